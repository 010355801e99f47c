# python imports:
import logging
from pathlib import Path
import sys
import trio # pip install trio trio-typing
from typing import List, Sequence as Seq
import unittest

if __name__ == '__main__': # pragma: no cover
	sys.path.append ( str ( Path ( __file__ ).parent.parent.absolute() ) )
	sys.path.append ( str ( Path ( __file__ ).parent.absolute() ) )

# sendeml imports:
import event_handling
import smtp_async
import smtp_proto as proto
from transport import AsyncTransport
from util import BYTES
from _smtptesting import quiet_logging

logger = logging.getLogger ( __name__ )


class CannedTransport ( AsyncTransport ):
	# hands out canned chunks, then EOF
	def __init__ ( self, chunks: Seq[bytes], fail_write: bool = False ) -> None:
		self.chunks = list ( chunks )
		self.fail_write = fail_write
		self.written: List[bytes] = []
		self.closed = False

	async def read ( self ) -> bytes:
		return self.chunks.pop ( 0 ) if self.chunks else b''

	async def write ( self, data: BYTES ) -> None:
		if self.fail_write:
			raise BrokenPipeError ( 'broken pipe' )
		self.written.append ( bytes ( data ) )

	async def close ( self ) -> None:
		self.closed = True

	async def is_file ( self, path: str ) -> bool:
		return path == 'test1.eml'

	async def read_file ( self, path: str ) -> bytes:
		return b'test'


class Tests ( unittest.TestCase ):
	def test_coverage ( self ) -> None:
		with self.assertRaises ( event_handling.Closed ):
			try:
				with event_handling.close_if_oserror():
					raise OSError ( 'foo' )
			except event_handling.Closed as e:
				self.assertEqual ( repr ( e ), '''Closed("OSError('foo')")''' )
				raise

	def test_id_prefix ( self ) -> None:
		test = self
		test.assertEqual ( event_handling.id_prefix ( None ), '' )
		test.assertEqual ( event_handling.id_prefix ( 0 ), '' )
		test.assertEqual ( event_handling.id_prefix ( 3 ), 'id: 3, ' )

	def test_client ( self ) -> None:
		test = self
		async def _test() -> None:
			t = CannedTransport ( [ b'220 milliways', b'.local ESMTP\r\n', b'250-hi\r\n250 HELP\r\n' ] )
			cli = smtp_async.Client ( t, 7 )
			with test.assertLogs ( 'smtp_async', logging.INFO ) as cm:
				r = await cli.greeting()
				test.assertEqual ( r.line, '220 milliways.local ESMTP' )
				r = await cli.ehlo()
				test.assertEqual ( r.line, '250 HELP' )
				await cli.send_mail ( b'test' )
			test.assertEqual ( t.written, [ b'EHLO localhost\r\n', b'test' ] )
			test.assertEqual ( [ rec.getMessage() for rec in cm.records ], [
				'id: 7, recv: 220 milliways.local ESMTP',
				'id: 7, send: EHLO localhost',
				'id: 7, recv: 250-hi',
				'id: 7, recv: 250 HELP',
			] )
			test.assertTrue ( await cli.is_file ( 'test1.eml' ) )
			test.assertEqual ( await cli.read_file ( 'test1.eml' ), b'test' )

			# server went away before answering
			with test.assertRaises ( proto.Closed ):
				await cli.quit()
			await cli.close()
			test.assertTrue ( t.closed )
		trio.run ( _test )

	def test_write_failure ( self ) -> None:
		test = self
		async def _test() -> None:
			cli = smtp_async.Client ( CannedTransport ( [], fail_write = True ) )
			with test.assertRaises ( proto.Closed ):
				try:
					with quiet_logging():
						await cli.rset()
				except proto.Closed as e:
					test.assertEqual ( repr ( e ), '''Closed("BrokenPipeError('broken pipe')")''' )
					raise
			with test.assertRaises ( proto.Closed ):
				await cli.send_mail ( b'test' )
		trio.run ( _test )

if __name__ == '__main__':
	logging.basicConfig ( level = logging.DEBUG )
	unittest.main()
