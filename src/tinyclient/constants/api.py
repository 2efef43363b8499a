"""Matrix client-server API endpoints and wire-level constants."""

__all__ = [
    "CONTENT_TYPE_JSON",
    "ENDPOINT_CREATE_ROOM",
    "ENDPOINT_JOIN",
    "ENDPOINT_LOGIN",
    "ENDPOINT_MEDIA_UPLOAD",
    "ENDPOINT_REFRESH",
    "ENDPOINT_ROOMS",
    "ENDPOINT_SYNC",
    "ENDPOINT_WELL_KNOWN",
    "HTTPS_PORT",
    "HTTP_VERSION",
    "METHOD_GET",
    "METHOD_POST",
    "METHOD_PUT",
    "URL_PREFIX_HTTPS",
    "URL_SCHEME_SEPARATOR",
    "WRITE_CHUNK_SIZE",
    "READ_CHUNK_SIZE",
]

# Endpoints
ENDPOINT_WELL_KNOWN = "/.well-known/matrix/client"
ENDPOINT_LOGIN = "/_matrix/client/v3/login"
ENDPOINT_REFRESH = "/_matrix/client/v3/refresh"
ENDPOINT_SYNC = "/_matrix/client/v3/sync"
ENDPOINT_CREATE_ROOM = "/_matrix/client/v3/createRoom"
ENDPOINT_JOIN = "/_matrix/client/v3/join"
ENDPOINT_ROOMS = "/_matrix/client/v3/rooms"
ENDPOINT_MEDIA_UPLOAD = "/_matrix/media/v3/upload"

# URL prefixes
URL_PREFIX_HTTPS = "https://"
URL_SCHEME_SEPARATOR = "://"

# Framing
HTTP_VERSION = "HTTP/1.1"
HTTPS_PORT = 443
METHOD_GET = "GET"
METHOD_POST = "POST"
METHOD_PUT = "PUT"
CONTENT_TYPE_JSON = "application/json"
WRITE_CHUNK_SIZE = 1024
READ_CHUNK_SIZE = 4096
