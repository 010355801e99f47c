from __future__ import annotations

# python imports:
from abc import ABCMeta
import contextlib
import logging
import sys
from typing import Iterator, Optional as Opt, Type

# sendeml imports:
from base_proto import (
	RequestType, ResponseType, Event, SendDataEvent, ClientProtocol, Closed,
)
from transport import AsyncTransport

logger = logging.getLogger ( __name__ )


def id_prefix ( id: Opt[int] ) -> str:
	return f'id: {id}, ' if id else ''


@contextlib.contextmanager
def _event_exception_safety ( event: Event ) -> Iterator[None]:
	try:
		yield
	except Exception:
		event.exc_info = sys.exc_info()


@contextlib.contextmanager
def close_if_oserror() -> Iterator[None]:
	try:
		yield
	except OSError as e:
		raise Closed ( repr ( e ) ) from e


class AsyncEventHandler:
	transport: AsyncTransport
	id: Opt[int] = None

	async def on_SendDataEvent ( self, event: SendDataEvent ) -> None:
		log = logger.getChild ( 'AsyncEventHandler.on_SendDataEvent' )
		for chunk in event.chunks:
			log.debug ( f'{id_prefix(self.id)}writing {len(chunk)} bytes' )
			await self.transport.write ( chunk )

	async def _on_event ( self, event: Event ) -> None:
		#log = logger.getChild ( 'AsyncEventHandler._on_event' )
		with _event_exception_safety ( event ):
			func = getattr ( self, f'on_{type(event).__name__}' )
			await func ( event )

	async def close ( self ) -> None:
		await self.transport.close()


class Client ( metaclass = ABCMeta ):
	protocls: Type[ClientProtocol]
	proto: ClientProtocol


class AsyncClient ( AsyncEventHandler, Client ):
	def __init__ ( self,
		transport: AsyncTransport,
		id: Opt[int] = None,
	) -> None:
		self.transport = transport
		self.id = id
		self.proto = self.protocls()

	async def _request ( self, request: RequestType[ResponseType] ) -> ResponseType:
		#log = logger.getChild ( 'AsyncClient._request' )
		for event in self.proto.send ( request ):
			await self._on_event ( event )
		while not request.base_response:
			with close_if_oserror():
				data: bytes = await self.transport.read()
			for event in self.proto.receive ( data ):
				await self._on_event ( event )
		assert request.base_response.is_success(), f'invalid {request.base_response=}'
		return request.response
