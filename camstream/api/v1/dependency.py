from typing import Annotated

from fastapi import Depends, Request

from camstream.domain.stream.stream_domain import StreamService


def get_stream_service(request: Request) -> StreamService:
    """The StreamService created by the application lifespan."""
    return request.app.state.stream_service


StreamServiceDep = Annotated[StreamService, Depends(get_stream_service)]
