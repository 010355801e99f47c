#region PROLOGUE --------------------------------------------------------------
from __future__ import annotations

# python imports:
import datetime
import logging
import random
import string
from typing import Callable, List, Optional as Opt, Sequence as Seq, Tuple

# sendeml imports:
from util import CR, LF, CRLF, find_cr, find_all_lf, s2b

logger = logging.getLogger ( __name__ )

Lines = List[bytes]

SPACE = 0x20
HTAB = 0x09

DATE_BYTES = b'Date:'
MESSAGE_ID_BYTES = b'Message-ID:'
EMPTY_LINE = bytes ( ( CR, LF, CR, LF ) )

_DAYS = ( 'Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun' ) # datetime.weekday() order
_MONTHS = ( 'Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun', 'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec' )
_MESSAGE_ID_CHARS = string.ascii_letters + string.digits
_MESSAGE_ID_LENGTH = 62


class MailFormatError ( ValueError ):
	pass

#endregion
#region LINES -----------------------------------------------------------------

def get_lines ( buf: bytes ) -> Lines:
	'''
	split buf into physical lines, each keeping its own line ending

	the last line is whatever follows the final LF (possibly b''), so
	b''.join ( get_lines ( buf ) ) == buf always holds
	'''
	lines: Lines = []
	offset = 0
	for i in find_all_lf ( buf ) + [ len ( buf ) - 1 ]:
		lines.append ( buf[offset:i + 1] )
		offset = i + 1
	return lines

def concat_bytes ( lines: Seq[bytes] ) -> bytes:
	return b''.join ( lines )

#endregion
#region HEADER FIELDS ---------------------------------------------------------

def match_header ( line: bytes, header: bytes ) -> bool:
	if not header:
		raise ValueError ( 'header is empty' )
	if len ( line ) < len ( header ):
		return False
	return line[:len ( header )] == header

def is_date_line ( line: bytes ) -> bool:
	return match_header ( line, DATE_BYTES )

def is_message_id_line ( line: bytes ) -> bool:
	return match_header ( line, MESSAGE_ID_BYTES )

def is_wsp ( b: int ) -> bool:
	return b == SPACE or b == HTAB

def is_folded_line ( line: bytes ) -> bool:
	return is_wsp ( line[0] if line else 0 )

def drop_folded_line ( lines: Lines ) -> Lines:
	# lines is everything after a replaced field, so its leading continuation lines belong to that field
	for idx, line in enumerate ( lines ):
		if not is_folded_line ( line ):
			return lines[idx:]
	return []

#endregion
#region LINE GENERATORS -------------------------------------------------------

def pad_zero2 ( n: int ) -> str:
	if n < 0 or n > 99:
		raise ValueError ( f'invalid number {n=}' )
	return f'{n:02d}'

def make_time_zone_offset ( minutes: int ) -> str:
	# minutes is the offset *behind* UTC, so UTC+09:00 is -540
	if minutes < -840 or minutes > 720:
		raise ValueError ( f'invalid time zone offset {minutes=}' )
	hours, mins = divmod ( abs ( minutes ), 60 )
	sign = '+' if minutes <= 0 else '-'
	return f'{sign}{pad_zero2(hours)}{pad_zero2(mins)}'

def make_date_line ( now: datetime.datetime ) -> str:
	assert now.tzinfo is not None, f'invalid {now=} (naive)'
	offset = now.utcoffset() or datetime.timedelta()
	zone = make_time_zone_offset ( -round ( offset.total_seconds() / 60 ) )
	day = _DAYS[now.weekday()]
	month = _MONTHS[now.month - 1]
	return (
		f'Date: {day}, {pad_zero2(now.day)} {month} {now.year}'
		f' {pad_zero2(now.hour)}:{pad_zero2(now.minute)}:{pad_zero2(now.second)}'
		f' {zone}{CRLF}'
	)

def make_now_date_line() -> str:
	return make_date_line ( datetime.datetime.now().astimezone() )

def make_random_message_id_line() -> str:
	rand_str = ''.join ( random.choices ( _MESSAGE_ID_CHARS, k = _MESSAGE_ID_LENGTH ) )
	return f'Message-ID: <{rand_str}>{CRLF}'

#endregion
#region HEADER REWRITE --------------------------------------------------------

def replace_line ( lines: Lines,
	match_line: Callable[[bytes],bool],
	make_line: Callable[[],str],
) -> Lines:
	for idx, line in enumerate ( lines ):
		if match_line ( line ):
			break
	else:
		return lines
	return lines[:idx] + [ s2b ( make_line() ) ] + drop_folded_line ( lines[idx + 1:] )

def replace_date_line ( lines: Lines ) -> Lines:
	return replace_line ( lines, is_date_line, make_now_date_line )

def replace_message_id_line ( lines: Lines ) -> Lines:
	return replace_line ( lines, is_message_id_line, make_random_message_id_line )

def replace_header ( header: bytes, update_date: bool, update_message_id: bool ) -> bytes:
	lines = get_lines ( header )
	if update_date:
		lines = replace_date_line ( lines )
	if update_message_id:
		lines = replace_message_id_line ( lines )
	return concat_bytes ( lines )

#endregion
#region SPLIT / COMBINE -------------------------------------------------------

def has_next_lf_cr_lf ( buf: bytes, idx: int ) -> bool:
	if len ( buf ) < idx + 4:
		return False
	return buf[idx + 1:idx + 4] == EMPTY_LINE[1:]

def find_empty_line ( buf: bytes ) -> int:
	offset = 0
	while ( idx := find_cr ( buf, offset ) ) != -1:
		if has_next_lf_cr_lf ( buf, idx ):
			return idx
		offset = idx + 1
	return -1

def split_mail ( buf: bytes ) -> Opt[Tuple[bytes,bytes]]:
	idx = find_empty_line ( buf )
	if idx == -1:
		return None
	return buf[:idx], buf[idx + len ( EMPTY_LINE ):]

def combine_mail ( header: bytes, body: bytes ) -> bytes:
	return concat_bytes ( ( header, EMPTY_LINE, body ) )

#endregion
#region MAIL ------------------------------------------------------------------

def is_not_update ( update_date: bool, update_message_id: bool ) -> bool:
	return not update_date and not update_message_id

def replace_mail ( buf: bytes, update_date: bool, update_message_id: bool ) -> bytes:
	'''
	return buf with its Date:/Message-ID: header lines regenerated

	if neither flag is set, buf itself is returned (no copy is made)

	raises MailFormatError if buf has no empty line separating header and body
	'''
	if is_not_update ( update_date, update_message_id ):
		return buf
	mail = split_mail ( buf )
	if mail is None:
		raise MailFormatError ( 'Invalid mail: header/body separator not found' )
	header, body = mail
	return combine_mail ( replace_header ( header, update_date, update_message_id ), body )

#endregion
