#region PROLOGUE --------------------------------------------------------------
from __future__ import annotations

# python imports:
import asyncio
import click # pip install click
import json
import logging
import packaging.version # pip install packaging
from pydantic import BaseModel, ConfigDict, Field, ValidationError # pip install pydantic
import trio # pip install trio trio-typing
from typing import (
	Any, Awaitable, Callable, List, Optional as Opt, Protocol, Sequence as Seq,
)

# sendeml imports:
from eml_proto import MailFormatError, replace_mail
from event_handling import id_prefix
import smtp_aio
import smtp_async
import smtp_proto as proto
import smtp_trio
from util import b2s

logger = logging.getLogger ( __name__ )

__version__ = packaging.version.parse ( '1.0' )

Connect = Callable[[str,int,Opt[int]],Awaitable[smtp_async.Client]]

class StartSoon ( Protocol ):
	def __call__ ( self, fn: Callable[...,Awaitable[Any]], *args: Any ) -> Any: ...

class FileAccess ( Protocol ):
	async def is_file ( self, path: str ) -> bool: ...
	async def read_file ( self, path: str ) -> bytes: ...

# everything that ends one SMTP session; never raised across sessions
SEND_ERRORS = ( proto.ErrorReply, proto.Closed, proto.ProtocolError, OSError )

#endregion
#region SETTINGS --------------------------------------------------------------

class ConfigError ( Exception ):
	pass


class Settings ( BaseModel ):
	model_config = ConfigDict ( strict = True, frozen = True, populate_by_name = True )

	smtp_host: str = Field ( alias = 'smtpHost' )
	smtp_port: int = Field ( alias = 'smtpPort' )
	from_address: str = Field ( alias = 'fromAddress' )
	to_addresses: List[str] = Field ( alias = 'toAddresses' )
	eml_files: List[str] = Field ( alias = 'emlFiles' )
	update_date: bool = Field ( True, alias = 'updateDate' )
	update_message_id: bool = Field ( True, alias = 'updateMessageId' )
	use_parallel: bool = Field ( False, alias = 'useParallel' )


def make_json_sample() -> str:
	return '''{
    "smtpHost": "172.16.3.151",
    "smtpPort": 25,
    "fromAddress": "a001@ah62.example.jp",
    "toAddresses": [
        "a001@ah62.example.jp",
        "a002@ah62.example.jp",
        "a003@ah62.example.jp"
    ],
    "emlFiles": [
        "test1.eml",
        "test2.eml",
        "test3.eml"
    ],
    "updateDate": true,
    "updateMessageId": true,
    "useParallel": false
}'''


def _error_message ( e: ValidationError ) -> str:
	# missing keys are reported before type errors
	errors = sorted ( e.errors(), key = lambda err: err['type'] != 'missing' )
	err = errors[0]
	loc = err['loc']
	if not loc:
		return str ( err['msg'] )
	if err['type'] == 'missing':
		return f'{loc[0]} key does not exist'
	if len ( loc ) > 1:
		return f'{loc[0]}: Invalid type (element): {err["input"]}'
	if err['type'] == 'list_type':
		return f'{loc[0]}: Invalid type (array): {err["input"]}'
	return f'{loc[0]}: Invalid type: {err["input"]}'


def check_settings ( obj: Any ) -> Settings:
	try:
		return Settings.model_validate ( obj )
	except ValidationError as e:
		raise ConfigError ( _error_message ( e ) ) from e


def get_settings_from_text ( text: str ) -> Settings:
	try:
		obj = json.loads ( text )
	except json.JSONDecodeError as e:
		raise ConfigError ( str ( e ) ) from e
	if not isinstance ( obj, dict ):
		raise ConfigError ( 'Invalid settings: expected a JSON object' )
	return check_settings ( obj )


async def load_settings ( json_file: str, files: FileAccess ) -> Settings:
	'''
	read and validate one JSON settings file

	files is the backend's transport class (see transport.AsyncTransport.is_file),
	so the disk access doesn't stall sessions already running on the same loop
	'''
	if not await files.is_file ( json_file ):
		raise ConfigError ( 'Json file does not exist' )
	data = await files.read_file ( json_file )
	try:
		text = b2s ( data, 'utf-8' )
	except UnicodeDecodeError as e:
		raise ConfigError ( str ( e ) ) from e
	return get_settings_from_text ( text )

#endregion
#region SESSION ---------------------------------------------------------------

class Session:
	'''
	one SMTP conversation: greeting, EHLO, then for each EML file
	[RSET,] MAIL FROM, RCPT TO..., DATA, <content>, <CRLF>. and finally QUIT

	client only needs to look like smtp_async.Client, so tests can pass a stand-in
	'''
	def __init__ ( self, client: smtp_async.Client, settings: Settings ) -> None:
		self.client = client
		self.settings = settings
		self.has_sent = False # RSET is sent before every message but the first

	@property
	def prefix ( self ) -> str:
		return id_prefix ( self.client.id )

	async def run ( self, eml_files: Seq[str] ) -> None:
		await self.client.greeting()
		await self.client.ehlo()
		for eml_file in eml_files:
			await self.send_file ( eml_file )
		await self.client.quit()

	async def send_file ( self, eml_file: str ) -> None:
		log = logger.getChild ( 'Session.send_file' )
		if not await self.client.is_file ( eml_file ):
			log.warning ( f'{self.prefix}{eml_file}: EML file does not exist' )
			return
		if self.has_sent:
			log.info ( f'{self.prefix}---' )
			await self.client.rset()
		await self.client.mail_from ( self.settings.from_address )
		await self.send_rcpt_to()
		await self.client.data()
		await self.send_mail ( eml_file )
		await self.client.crlf_dot()
		self.has_sent = True

	async def send_rcpt_to ( self ) -> None:
		log = logger.getChild ( 'Session.send_rcpt_to' )
		for addr in self.settings.to_addresses:
			try:
				await self.client.rcpt_to ( addr )
			except proto.ErrorReply as e:
				# the remaining recipients are still tried, the server decides at DATA
				log.warning ( f'{self.prefix}recipient rejected: {addr}: {e}' )

	async def send_mail ( self, eml_file: str ) -> None:
		log = logger.getChild ( 'Session.send_mail' )
		log.info ( f'{self.prefix}send: {eml_file}' )
		mail = await self.client.read_file ( eml_file )
		try:
			content = replace_mail ( mail,
				self.settings.update_date,
				self.settings.update_message_id,
			)
		except MailFormatError as e:
			log.debug ( f'{self.prefix}{eml_file}: {e}' )
			log.warning ( f'{self.prefix}error: Invalid mail: Disable updateDate, updateMessageId' )
			content = mail
		await self.client.send_mail ( content )


async def send_messages (
	connect: Connect,
	settings: Settings,
	eml_files: Seq[str],
	id: Opt[int] = None,
) -> None:
	client = await connect ( settings.smtp_host, settings.smtp_port, id )
	try:
		await Session ( client, settings ).run ( eml_files )
	finally:
		await client.close()


async def send_messages_logged (
	connect: Connect,
	settings: Settings,
	eml_files: Seq[str],
	id: Opt[int],
	source: str,
) -> None:
	log = logger.getChild ( 'send_messages_logged' )
	try:
		await send_messages ( connect, settings, eml_files, id )
	except SEND_ERRORS as e:
		log.error ( f'{id_prefix(id)}error: {source}: {e}' )

#endregion
#region DISPATCH --------------------------------------------------------------

def dispatch_parallel (
	start_soon: StartSoon,
	connect: Connect,
	settings: Settings,
	source: str = '',
) -> None:
	'''
	start one session per EML file, each on its own connection, and return immediately

	start_soon is usually trio.Nursery.start_soon; whoever owns the nursery (or
	asyncio.TaskGroup) decides whether to wait for the sessions to finish
	'''
	for id, eml_file in enumerate ( settings.eml_files, 1 ):
		start_soon ( send_messages_logged, connect, settings, [ eml_file ], id, source )


async def proc_json_file (
	json_file: str,
	connect: Connect,
	start_soon: StartSoon,
	files: FileAccess,
) -> None:
	settings = await load_settings ( json_file, files )
	if settings.use_parallel and len ( settings.eml_files ) > 1:
		dispatch_parallel ( start_soon, connect, settings, json_file )
	else:
		await send_messages ( connect, settings, settings.eml_files )


async def proc_json_files (
	json_files: Seq[str],
	connect: Connect,
	start_soon: StartSoon,
	files: FileAccess,
) -> None:
	log = logger.getChild ( 'proc_json_files' )
	for json_file in json_files:
		try:
			await proc_json_file ( json_file, connect, start_soon, files )
		except ConfigError as e:
			log.error ( f'error: {json_file}: {e}' )
		except SEND_ERRORS as e:
			log.error ( f'error: {json_file}: {e}' )


async def main_trio ( json_files: Seq[str] ) -> None:
	async with trio.open_nursery() as nursery:
		await proc_json_files ( json_files,
			smtp_trio.Client.connect,
			nursery.start_soon,
			smtp_trio.Transport,
		)


async def main_aio ( json_files: Seq[str] ) -> None:
	async with asyncio.TaskGroup() as tg:
		def start_soon ( fn: Callable[...,Awaitable[Any]], *args: Any ) -> None:
			tg.create_task ( fn ( *args ) )
		await proc_json_files ( json_files,
			smtp_aio.Client.connect,
			start_soon,
			smtp_aio.Transport,
		)

#endregion
#region CLI -------------------------------------------------------------------

@click.command()
@click.argument ( 'json_files', nargs = -1, metavar = 'JSON_FILE...' )
@click.option ( '--backend',
	type = click.Choice ( [ 'trio', 'asyncio' ] ),
	default = 'trio',
	show_default = True,
	help = 'event loop used to drive the SMTP sessions',
)
@click.option ( '-v', '--verbose', is_flag = True, help = 'log protocol internals' )
@click.version_option ( str ( __version__ ), message = 'SendEML / Version: %(version)s' )
@click.pass_context
def main ( ctx: click.Context, json_files: Seq[str], backend: str, verbose: bool ) -> None:
	'''
	send the EML files listed in each JSON_FILE to its SMTP server
	'''
	if not json_files:
		click.echo ( ctx.get_help() )
		click.echo()
		click.echo ( 'json_file sample:' )
		click.echo ( make_json_sample() )
		return
	logging.basicConfig (
		level = logging.DEBUG if verbose else logging.INFO,
		format = '%(message)s',
	)
	if backend == 'trio':
		trio.run ( main_trio, json_files )
	else:
		asyncio.run ( main_aio ( json_files ) )

#endregion

if __name__ == '__main__': # pragma: no cover
	main()
