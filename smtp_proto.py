#region PROLOGUE --------------------------------------------------------------
from __future__ import annotations

# python imports:
from abc import abstractmethod
import logging
import re

# sendeml imports:
from base_proto import (
	BaseResponse, RequestT, Event, NeedDataEvent, SendDataEvent,
	SendCommandEvent, ReplyLineEvent, Closed, ProtocolError,
	RequestProtocolGenerator, ClientProtocol, ClientUtil,
)
from util import CRLF

logger = logging.getLogger ( __name__ )


_r_last_reply = re.compile ( r'^\d{3} .+' )
_r_eol = re.compile ( r'[\r\n]' )

CRLF_DOT = f'{CRLF}.'

#endregion
#region REPLIES ---------------------------------------------------------------

def is_last_reply ( line: str ) -> bool:
	# "250-..." continues a multi-line reply, "250 ..." ends it
	return bool ( _r_last_reply.match ( line ) )

def is_positive_reply ( line: str ) -> bool:
	return line[:1] in ( '2', '3' )


class Reply ( BaseResponse ):
	def __init__ ( self, line: str ) -> None:
		self.line = line
		self.code = int ( line[:3] )
		super().__init__ ( line )

	@staticmethod
	def parse ( line: str ) -> Reply:
		assert is_last_reply ( line ), f'invalid {line=}'
		if is_positive_reply ( line ):
			return SuccessReply ( line )
		return ErrorReply ( line )

	def __str__ ( self ) -> str:
		return self.line

	def __repr__ ( self ) -> str:
		cls = type ( self )
		return f'{cls.__module__}.{cls.__name__}({self.line!r})'


class SuccessReply ( Reply ):
	def is_success ( self ) -> bool:
		return True


class ErrorReply ( Reply ):
	def is_success ( self ) -> bool:
		return False


client_util = ClientUtil ( Reply.parse, is_last_reply )

#endregion
#region REQUESTS --------------------------------------------------------------

def replace_crlf_dot ( command: str ) -> str:
	return '<CRLF>.' if command == CRLF_DOT else command


class Request ( RequestT[SuccessReply] ):
	responsecls = SuccessReply

	def _client_protocol ( self, client: ClientProtocol ) -> RequestProtocolGenerator:
		assert isinstance ( client, Client )
		yield from self.client_protocol ( client )

	@abstractmethod
	def client_protocol ( self, client: Client ) -> RequestProtocolGenerator:
		cls = self.__class__
		raise NotImplementedError ( f'{cls.__module__}.{cls.__name__}.client_protocol()' )


class GreetingRequest ( Request ):
	# the server speaks first, nothing to send

	def client_protocol ( self, client: Client ) -> RequestProtocolGenerator:
		yield from client_util.recv_reply()


class CommandRequest ( Request ):
	command: str

	def __init__ ( self, command: str ) -> None:
		self.command = command

	def client_protocol ( self, client: Client ) -> RequestProtocolGenerator:
		yield from client_util.send_recv ( self.command )

	def __repr__ ( self ) -> str:
		cls = type ( self )
		return f'{cls.__module__}.{cls.__name__}({self.command!r})'


class EhloRequest ( CommandRequest ):
	def __init__ ( self, domain: str = 'localhost' ) -> None:
		domain = str ( domain ).strip()
		assert domain and not _r_eol.search ( domain ), f'invalid {domain=}'
		super().__init__ ( f'EHLO {domain}' )


class MailFromRequest ( CommandRequest ):
	def __init__ ( self, mail_from: str ) -> None:
		assert not _r_eol.search ( mail_from ), f'invalid {mail_from=}'
		super().__init__ ( f'MAIL FROM: <{mail_from}>' )


class RcptToRequest ( CommandRequest ):
	def __init__ ( self, rcpt_to: str ) -> None:
		assert not _r_eol.search ( rcpt_to ), f'invalid {rcpt_to=}'
		super().__init__ ( f'RCPT TO: <{rcpt_to}>' )


class DataRequest ( CommandRequest ):
	def __init__ ( self ) -> None:
		super().__init__ ( 'DATA' )


class CrlfDotRequest ( CommandRequest ):
	# NOTE: content lines starting with '.' are *not* dot-stuffed, the mail is sent exactly as read
	def __init__ ( self ) -> None:
		super().__init__ ( CRLF_DOT )


class RsetRequest ( CommandRequest ):
	def __init__ ( self ) -> None:
		super().__init__ ( 'RSET' )


class QuitRequest ( CommandRequest ):
	def __init__ ( self ) -> None:
		super().__init__ ( 'QUIT' )

#endregion
#region CLIENT ----------------------------------------------------------------

class Client ( ClientProtocol ):
	_MAXLINE = 8192

#endregion
