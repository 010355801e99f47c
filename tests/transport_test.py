# python imports:
import asyncio
import logging
from pathlib import Path
import sys
import tempfile
import trio # pip install trio trio-typing
import trio.testing
import unittest

if __name__ == '__main__': # pragma: no cover
	sys.path.append ( str ( Path ( __file__ ).parent.parent.absolute() ) )

# sendeml imports:
from base_proto import Closed, ProtocolError
import transport
from transport_aio import AsyncioTransport
from transport_trio import TrioTransport
from util import BYTES

logger = logging.getLogger ( __name__ )

class Tests ( unittest.TestCase ):
	def test_coverage ( self ) -> None:
		async def _test() -> None:
			class AT ( transport.AsyncTransport ):
				async def read ( self ) -> bytes:
					return await super().read()
				async def write ( self, data: BYTES ) -> None:
					await super().write ( data )
				async def close ( self ) -> None:
					await super().close()
				async def is_file ( self, path: str ) -> bool:
					return await super().is_file ( path )
				async def read_file ( self, path: str ) -> bytes:
					return await super().read_file ( path )
			at = AT()
			with self.assertRaises ( NotImplementedError ):
				await at.read()
			with self.assertRaises ( NotImplementedError ):
				await at.write ( b'foo' )
			with self.assertRaises ( NotImplementedError ):
				await at.close()
			with self.assertRaises ( NotImplementedError ):
				await at.is_file ( 'test1.eml' )
			with self.assertRaises ( NotImplementedError ):
				await at.read_file ( 'test1.eml' )
		trio.run ( _test )

	def test_trio ( self ) -> None:
		test = self
		async def _test() -> None:
			client_stream, server_stream = trio.testing.memory_stream_pair()
			t = TrioTransport ( client_stream )
			await t.write ( b'EHLO localhost\r\n' )
			test.assertEqual ( await server_stream.receive_some(), b'EHLO localhost\r\n' )
			await server_stream.send_all ( b'250 OK\r\n' )
			test.assertEqual ( await t.read(), b'250 OK\r\n' )
			await server_stream.aclose()
			test.assertEqual ( await t.read(), b'' )
			await t.close()

			with tempfile.TemporaryDirectory() as tmp:
				path = Path ( tmp ) / 'test1.eml'
				path.write_bytes ( b'Subject: test\r\n\r\ntest' )
				test.assertTrue ( await t.is_file ( str ( path ) ) )
				test.assertFalse ( await t.is_file ( str ( path.with_name ( 'test2.eml' ) ) ) )
				test.assertFalse ( await t.is_file ( tmp ) ) # directories aren't mail
				test.assertEqual ( await t.read_file ( str ( path ) ), b'Subject: test\r\n\r\ntest' )
		trio.run ( _test )

	def test_trio_broken ( self ) -> None:
		test = self
		async def _test() -> None:
			client_stream, server_stream = trio.testing.memory_stream_pair()
			t = TrioTransport ( client_stream )
			await server_stream.aclose()
			# peer is gone, memory streams report that like a reset socket
			with test.assertRaises ( Closed ):
				try:
					await t.write ( b'EHLO localhost\r\n' )
				except Closed as e:
					test.assertIn ( 'BrokenResourceError', str ( e ) )
					test.assertIsInstance ( e.__cause__, trio.BrokenResourceError )
					raise
			await t.close()
			with test.assertRaises ( Closed ):
				try:
					await t.read()
				except Closed as e:
					test.assertIsInstance ( e.__cause__, trio.ClosedResourceError )
					raise
			with test.assertRaises ( Closed ):
				await t.write ( b'QUIT\r\n' )
		trio.run ( _test )

	def test_asyncio_line_too_long ( self ) -> None:
		test = self
		async def _test() -> None:
			rx = asyncio.StreamReader ( limit = 16 )
			rx.feed_data ( b'250 ' + b'X' * 40 + b'\r\n' )
			rx.feed_data ( b'250 OK\r\n' )
			rx.feed_eof()
			t = AsyncioTransport ( rx, None ) # type: ignore
			with test.assertRaises ( ProtocolError ):
				await t.read()
			test.assertEqual ( await t.read(), b'250 OK\r\n' )
			test.assertEqual ( await t.read(), b'' )
		asyncio.run ( _test() )

if __name__ == '__main__':
	logging.basicConfig ( level = logging.DEBUG )
	unittest.main()
