from __future__ import annotations

# python imports:
import contextlib
import logging
from typing import Awaitable, Callable, Dict, Iterator, List, Optional as Opt

logger = logging.getLogger ( __name__ )

EHLO_REPLY = (
	b'250-milliways.local greets localhost\r\n'
	b'250-PIPELINING\r\n'
	b'250 HELP\r\n'
)


@contextlib.contextmanager
def quiet_logging ( quiet: bool = True ) -> Iterator[None]:
	try:
		if quiet:
			logging.disable ( logging.CRITICAL )
		yield None
	finally:
		if quiet:
			logging.disable ( logging.NOTSET )


def lf_to_crlf ( text: str ) -> str:
	return text.replace ( '\n', '\r\n' )


SIMPLE_MAIL_TEXT = lf_to_crlf ( '''From: a001 <a001@ah62.example.jp>
Subject: test
To: a002@ah62.example.jp
Message-ID: <b0e564a5-4f70-761a-e103-70119d1bcb32@ah62.example.jp>
Date: Sun, 26 Jul 2020 22:01:37 +0900
User-Agent: Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:78.0) Gecko/20100101
 Thunderbird/78.0.1
MIME-Version: 1.0
Content-Type: text/plain; charset=utf-8; format=flowed
Content-Transfer-Encoding: 7bit
Content-Language: en-US

test''' )

FOLDED_MAIL_TEXT = lf_to_crlf ( '''From: a001 <a001@ah62.example.jp>
Subject: test
To: a002@ah62.example.jp
Message-ID:
 <b0e564a5-4f70-761a-e103-70119d1bcb32@ah62.example.jp>
Date:
 Sun, 26 Jul 2020
 22:01:37 +0900
User-Agent: Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:78.0) Gecko/20100101
 Thunderbird/78.0.1
MIME-Version: 1.0
Content-Type: text/plain; charset=utf-8; format=flowed
Content-Transfer-Encoding: 7bit
Content-Language: en-US

test''' )

def make_simple_mail() -> bytes:
	return SIMPLE_MAIL_TEXT.encode()

def make_invalid_mail() -> bytes:
	return SIMPLE_MAIL_TEXT.replace ( '\r\n\r\n', '', 1 ).encode()

def make_folded_mail() -> bytes:
	return FOLDED_MAIL_TEXT.encode()


class ScriptedServer:
	'''
	just enough of an SMTP server to drive a client session

	every command gets "250 OK" unless listed in replies (matched on the full command line)
	'''
	def __init__ ( self,
		recv: Callable[[],Awaitable[bytes]],
		send: Callable[[bytes],Awaitable[None]],
		close: Callable[[],Awaitable[None]],
		*,
		greeting: bytes = b'220 milliways.local ESMTP\r\n',
		replies: Opt[Dict[str,bytes]] = None,
		hangup_after_greeting: bool = False,
	) -> None:
		self.recv, self.send, self.close = recv, send, close
		self.greeting = greeting
		self.replies = replies or {}
		self.hangup_after_greeting = hangup_after_greeting
		self.commands: List[str] = []
		self.messages: List[bytes] = []
		self._buf = b''

	def reply ( self, line: str ) -> bytes:
		if line in self.replies:
			return self.replies[line]
		if line.startswith ( 'EHLO ' ):
			return EHLO_REPLY
		if line == 'DATA':
			return b'354 End data with <CR><LF>.<CR><LF>\r\n'
		if line == 'QUIT':
			return b'221 2.0.0 Bye\r\n'
		return b'250 OK\r\n'

	async def _read_until ( self, sep: bytes ) -> bytes:
		while ( idx := self._buf.find ( sep ) ) == -1:
			data = await self.recv()
			if not data:
				raise EOFError()
			self._buf += data
		found, self._buf = self._buf[:idx], self._buf[idx + len ( sep ):]
		return found

	async def run ( self ) -> None:
		log = logger.getChild ( 'ScriptedServer.run' )
		await self.send ( self.greeting )
		if self.hangup_after_greeting:
			await self.close()
			return
		try:
			while True:
				line = ( await self._read_until ( b'\r\n' ) ).decode()
				log.debug ( f'C>{line}' )
				self.commands.append ( line )
				reply = self.reply ( line )
				await self.send ( reply )
				if line == 'DATA' and reply.startswith ( b'354' ):
					self.messages.append ( await self._read_until ( b'\r\n.\r\n' ) )
					await self.send ( b'250 2.0.0 Ok: queued\r\n' )
				elif line == 'QUIT':
					break
		except EOFError:
			log.debug ( 'client hung up' )
		await self.close()
