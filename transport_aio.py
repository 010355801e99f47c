from __future__ import annotations

# python imports:
import asyncio
import logging
from pathlib import Path
from typing import Type

# sendeml imports:
from base_proto import ProtocolError
from transport import AsyncTransport
from util import BYTES

logger = logging.getLogger ( __name__ )


class AsyncioTransport ( AsyncTransport ):
	rx: asyncio.StreamReader
	tx: asyncio.StreamWriter

	def __init__ ( self, rx: asyncio.StreamReader, tx: asyncio.StreamWriter ) -> None:
		self.rx, self.tx = rx, tx

	@classmethod
	async def connect ( cls: Type[AsyncioTransport], hostname: str, port: int ) -> AsyncioTransport:
		log = logger.getChild ( 'AsyncioTransport.connect' )
		log.debug ( f'connecting to {hostname}:{port}' )
		rx, tx = await asyncio.open_connection ( hostname, port )
		return cls ( rx, tx )

	async def read ( self ) -> bytes:
		#log = logger.getChild ( 'AsyncioTransport.read' )
		try:
			return await self.rx.readline() # NOTE: there doesn't seem to be a way to tell asyncio to give us everything it has...
		except ( asyncio.LimitOverrunError, ValueError ) as e:
			# readline() turns an over-long line into ValueError
			raise ProtocolError ( 'maximum line length exceeded' ) from e

	async def write ( self, data: BYTES ) -> None:
		#log = logger.getChild ( 'AsyncioTransport.write' )
		self.tx.write ( data )
		await self.tx.drain()

	async def close ( self ) -> None:
		#log = logger.getChild ( 'AsyncioTransport.close' )
		self.tx.close()
		await self.tx.wait_closed()

	@staticmethod
	async def is_file ( path: str ) -> bool:
		return await asyncio.to_thread ( Path ( path ).is_file )

	@staticmethod
	async def read_file ( path: str ) -> bytes:
		return await asyncio.to_thread ( Path ( path ).read_bytes )
