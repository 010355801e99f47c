from __future__ import annotations

# python imports:
import contextlib
import logging
import trio # pip install trio trio-typing
from typing import Iterator, Type

# sendeml imports:
from base_proto import Closed
from transport import AsyncTransport
from util import BYTES

logger = logging.getLogger ( __name__ )


@contextlib.contextmanager
def close_if_broken() -> Iterator[None]:
	# trio reports a reset or already-closed stream with its own exceptions, not OSError
	try:
		yield
	except ( trio.BrokenResourceError, trio.ClosedResourceError ) as e:
		raise Closed ( repr ( e ) ) from e


class TrioTransport ( AsyncTransport ):
	happy_eyeballs_delay: float = 0.25 # this is the same as trio's default circa version 0.16.0
	stream: trio.abc.Stream

	def __init__ ( self, stream: trio.abc.Stream ) -> None:
		self.stream = stream

	@classmethod
	async def connect ( cls: Type[TrioTransport], hostname: str, port: int ) -> TrioTransport:
		log = logger.getChild ( 'TrioTransport.connect' )
		log.debug ( f'connecting to {hostname}:{port}' )
		stream = await trio.open_tcp_stream ( hostname, port,
			happy_eyeballs_delay = cls.happy_eyeballs_delay,
		)
		return cls ( stream )

	async def read ( self ) -> bytes:
		#log = logger.getChild ( 'TrioTransport.read' )
		with close_if_broken():
			return await self.stream.receive_some()

	async def write ( self, data: BYTES ) -> None:
		#log = logger.getChild ( 'TrioTransport.write' )
		with close_if_broken():
			await self.stream.send_all ( data )

	async def close ( self ) -> None:
		#log = logger.getChild ( 'TrioTransport.close' )
		await self.stream.aclose()

	@staticmethod
	async def is_file ( path: str ) -> bool:
		return await trio.Path ( path ).is_file()

	@staticmethod
	async def read_file ( path: str ) -> bytes:
		return await trio.Path ( path ).read_bytes()
