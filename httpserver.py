import os
import logging
from collections import namedtuple
from http import HTTPStatus

CHUNK_SIZE = 64 * 1024
MAX_LINE = 65536
UNKNOWN_TYPE = 'x-application/x-unknown'

FILE_TYPES = {
    '.txt': 'text/plain',
    '.html': 'text/html',
    '.htm': 'text/html',
    '.css': 'text/css',
    '.js': 'text/javascript',
    '.java': 'text/x-java',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.png': 'image/png',
    '.gif': 'image/gif',
    '.ico': 'image/x-icon',
    '.class': 'application/java-vm',
    '.jar': 'application/java-archive',
    '.zip': 'application/zip',
    '.xml': 'application/xml',
    '.xhtml': 'application/xhtml+xml',
}

ERROR_MESSAGES = {
    HTTPStatus.NOT_FOUND: "The resource that you requested does not exist on this server.",
    HTTPStatus.FORBIDDEN: "You do not have read permission for the requested resource.",
    HTTPStatus.NOT_IMPLEMENTED: "The server only supports GET requests.",
}

IncomingRequest = namedtuple('IncomingRequest', ['method', 'target_path'])
ResolvedTarget = namedtuple(
    'ResolvedTarget',
    ['absolute_path', 'exists', 'is_directory', 'is_readable', 'inside_root']
)


class MalformedRequest(Exception):
    pass


class UnsupportedMethod(MalformedRequest):
    """A well-formed request line whose method is not GET."""

    def __init__(self, method):
        super().__init__(f"Unsupported method: {method}")
        self.method = method


def read_request_line(rfile):
    raw = rfile.readline(MAX_LINE + 1)
    if not raw:
        raise MalformedRequest("No request line received")
    if len(raw) > MAX_LINE:
        raise MalformedRequest("Request line too long")
    return raw.rstrip(b'\r\n').decode('iso-8859-1')


def parse_request_line(line):
    """
    Extract the target path from a request line such as
    ``GET /index.html HTTP/1.1``.

    Only GET is served. Any other upper-case method token followed by a
    target and an HTTP version raises UnsupportedMethod; everything else
    that does not fit the shape raises MalformedRequest.
    """
    method, sep, rest = line.partition(' ')
    if not sep:
        raise MalformedRequest(f"Malformed request line: {line!r}")

    end = rest.find(' HTTP')
    if end < 0:
        raise MalformedRequest(f"Missing protocol version: {line!r}")

    target_path = rest[:end].lstrip(' ')
    if not target_path.startswith('/'):
        raise MalformedRequest(f"Invalid request target: {line!r}")

    if method != 'GET':
        if method.isalpha() and method.isupper():
            raise UnsupportedMethod(method)
        raise MalformedRequest(f"Invalid method: {line!r}")

    return IncomingRequest(method, target_path)


def mime_type(filename):
    # everything after the last dot, so "/.png" is a png
    _, dot, ext = filename.rpartition('.')
    if not dot:
        return UNKNOWN_TYPE
    return FILE_TYPES.get('.' + ext.lower(), UNKNOWN_TYPE)


def error_page(status):
    return (
        "<html><head><title>Error</title></head><body>"
        f"<h2>Error: {status.value} {status.phrase}</h2><p>{ERROR_MESSAGES[status]}</p>"
        "</body></html>"
    ).encode('utf-8')


class FileHandler:
    def __init__(self, root_directory):
        self.root = os.path.abspath(root_directory)
        self.real_root = os.path.realpath(root_directory)

    def resolve(self, target_path):
        absolute_path = os.path.normpath(os.path.join(self.root, target_path.lstrip('/')))
        # symlinks are followed before checking containment
        real_path = os.path.realpath(absolute_path)
        inside_root = os.path.commonpath([self.real_root, real_path]) == self.real_root
        exists = inside_root and os.path.exists(absolute_path)
        return ResolvedTarget(
            absolute_path=absolute_path,
            exists=exists,
            is_directory=exists and os.path.isdir(absolute_path),
            is_readable=exists and os.access(absolute_path, os.R_OK),
            inside_root=inside_root,
        )

    def respond(self, target_path, wfile):
        target = self.resolve(target_path)

        if not target.inside_root:
            logging.warning(f"Rejected path outside root: {target_path}")
            status = HTTPStatus.FORBIDDEN
        elif not target.exists:
            status = HTTPStatus.NOT_FOUND
        elif target.is_directory or not target.is_readable:
            status = HTTPStatus.FORBIDDEN
        else:
            try:
                f = open(target.absolute_path, 'rb')
            except PermissionError:
                status = HTTPStatus.FORBIDDEN
            else:
                with f:
                    self._send_file(f, target_path, wfile)
                return HTTPStatus.OK

        self.send_error(status, wfile)
        return status

    def send_error(self, status, wfile):
        self._write_head(wfile, status, [('Content-Type', 'text/html')])
        wfile.write(error_page(status))
        wfile.flush()

    def _send_file(self, f, target_path, wfile):
        size = os.fstat(f.fileno()).st_size
        self._write_head(wfile, HTTPStatus.OK, [
            ('Content-Length', str(size)),
            ('Content-Type', mime_type(target_path)),
        ])
        remaining = size
        while remaining > 0 and (chunk := f.read(min(CHUNK_SIZE, remaining))):
            wfile.write(chunk)
            remaining -= len(chunk)
        wfile.flush()

    def _write_head(self, wfile, status, headers):
        lines = [
            f"HTTP/1.1 {status.value} {status.phrase}\r\n",
            "Connection: close\r\n",
        ]
        lines.extend(f"{k}: {v}\r\n" for k, v in headers)
        lines.append("\r\n")
        wfile.write(''.join(lines).encode('iso-8859-1'))
