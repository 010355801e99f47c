from typing import List, Union

BYTES = Union[bytes,bytearray,memoryview]
bytes_types = ( bytes, bytearray, memoryview )

CR = 0x0D
LF = 0x0A
CRLF = '\r\n'

def b2s ( b: BYTES, encoding: str = 'us-ascii', errors: str = 'strict' ) -> str:
	return bytes ( b ).decode ( encoding, errors )

def s2b ( s: str, encoding: str = 'us-ascii', errors: str = 'strict' ) -> bytes:
	return s.encode ( encoding, errors )

def find_cr ( buf: bytes, offset: int ) -> int:
	return buf.find ( CR, offset )

def find_lf ( buf: bytes, offset: int ) -> int:
	return buf.find ( LF, offset )

def find_all_lf ( buf: bytes ) -> List[int]:
	indices: List[int] = []
	offset = 0
	while ( idx := find_lf ( buf, offset ) ) != -1:
		indices.append ( idx )
		offset = idx + 1
	return indices
