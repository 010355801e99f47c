# python imports:
from abc import ABCMeta, abstractmethod
import logging

# sendeml imports:
from util import BYTES

logger = logging.getLogger ( __name__ )


class AsyncTransport ( metaclass = ABCMeta ):
	@abstractmethod
	async def read ( self ) -> bytes:
		'''
		return the next chunk of data received, or b'' once the peer has closed the connection
		'''
		cls = type ( self )
		raise NotImplementedError ( f'{cls.__module__}.{cls.__name__}.read()' )

	@abstractmethod
	async def write ( self, data: BYTES ) -> None:
		cls = type ( self )
		raise NotImplementedError ( f'{cls.__module__}.{cls.__name__}.write()' )

	@abstractmethod
	async def close ( self ) -> None:
		cls = type ( self )
		raise NotImplementedError ( f'{cls.__module__}.{cls.__name__}.close()' )

	@abstractmethod
	async def is_file ( self, path: str ) -> bool:
		'''
		concrete transports implement is_file() and read_file() as staticmethods
		so the class itself can read local files on its event loop before any connection exists
		'''
		cls = type ( self )
		raise NotImplementedError ( f'{cls.__module__}.{cls.__name__}.is_file()' )

	@abstractmethod
	async def read_file ( self, path: str ) -> bytes:
		cls = type ( self )
		raise NotImplementedError ( f'{cls.__module__}.{cls.__name__}.read_file()' )
