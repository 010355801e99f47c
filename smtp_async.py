# system imports:
import logging

# sendeml imports:
from event_handling import AsyncClient, close_if_oserror, id_prefix
import smtp_proto as proto
from util import BYTES

logger = logging.getLogger ( __name__ )


class Client ( AsyncClient ):
	protocls = proto.Client

	async def greeting ( self ) -> proto.SuccessReply:
		return await self._request ( proto.GreetingRequest() )

	async def send_cmd ( self, command: str ) -> proto.SuccessReply:
		'''
		send one command line and wait for its (possibly multi-line) reply

		raises proto.ErrorReply if the reply is negative
		and proto.Closed if the server hangs up before replying
		'''
		return await self._request ( proto.CommandRequest ( command ) )

	async def ehlo ( self, local_hostname: str = 'localhost' ) -> proto.SuccessReply:
		return await self._request ( proto.EhloRequest ( local_hostname ) )

	async def mail_from ( self, email: str ) -> proto.SuccessReply:
		return await self._request ( proto.MailFromRequest ( email ) )

	async def rcpt_to ( self, email: str ) -> proto.SuccessReply:
		return await self._request ( proto.RcptToRequest ( email ) )

	async def data ( self ) -> proto.SuccessReply:
		return await self._request ( proto.DataRequest() )

	async def send_mail ( self, content: BYTES ) -> None:
		# written as-is between DATA and <CRLF>., see proto.CrlfDotRequest
		log = logger.getChild ( 'Client.send_mail' )
		log.debug ( f'{id_prefix(self.id)}writing {len(content)} bytes of mail content' )
		with close_if_oserror():
			await self.transport.write ( content )

	async def crlf_dot ( self ) -> proto.SuccessReply:
		return await self._request ( proto.CrlfDotRequest() )

	async def rset ( self ) -> proto.SuccessReply:
		return await self._request ( proto.RsetRequest() )

	async def quit ( self ) -> proto.SuccessReply:
		return await self._request ( proto.QuitRequest() )

	async def is_file ( self, path: str ) -> bool:
		return await self.transport.is_file ( path )

	async def read_file ( self, path: str ) -> bytes:
		return await self.transport.read_file ( path )

	async def on_SendCommandEvent ( self, event: proto.SendCommandEvent ) -> None:
		log = logger.getChild ( 'Client.on_SendCommandEvent' )
		log.info ( f'{id_prefix(self.id)}send: {proto.replace_crlf_dot(event.command)}' )
		await self.on_SendDataEvent ( event )

	async def on_ReplyLineEvent ( self, event: proto.ReplyLineEvent ) -> None:
		log = logger.getChild ( 'Client.on_ReplyLineEvent' )
		log.info ( f'{id_prefix(self.id)}recv: {event.line}' )
