from __future__ import annotations

# python imports:
from typing import Optional as Opt, Type

# sendeml imports:
import smtp_async
from transport_aio import AsyncioTransport as Transport

class Client ( smtp_async.Client ):
	@classmethod
	async def connect ( cls: Type[Client],
		hostname: str,
		port: int,
		id: Opt[int] = None,
	) -> Client:
		transport = await Transport.connect ( hostname, port )
		return cls ( transport, id )
