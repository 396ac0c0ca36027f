import os
import sys
import socket
import threading
import logging
import argparse
from collections import namedtuple
from http import HTTPStatus

from httpserver import FileHandler, MalformedRequest, UnsupportedMethod, parse_request_line, read_request_line

DEFAULT_HOST = '0.0.0.0'
DEFAULT_PORT = 8040

ServerConfig = namedtuple('ServerConfig', ['host', 'port', 'root_directory'])


def handle_connection(connection, file_handler):
    with connection.makefile('rb') as rfile, connection.makefile('wb') as wfile:
        try:
            request = parse_request_line(read_request_line(rfile))
        except UnsupportedMethod as e:
            logging.warning(str(e))
            file_handler.send_error(HTTPStatus.NOT_IMPLEMENTED, wfile)
            return
        except MalformedRequest as e:
            logging.warning(f"Dropping request: {e}")
            return

        logging.debug(f"{request.method} {request.target_path}")
        status = file_handler.respond(request.target_path, wfile)
        logging.debug(f"{request.target_path} -> {status.value} {status.phrase}")


class ProcessTheClient(threading.Thread):
    def __init__(self, connection, address, file_handler):
        self.connection = connection
        self.address = address
        self.file_handler = file_handler
        threading.Thread.__init__(self, daemon=True)

    def run(self):
        try:
            handle_connection(self.connection, self.file_handler)
        except Exception as e:
            logging.error(f"Error handling client {self.address}: {e}")
        finally:
            self.connection.close()


class Server:
    def __init__(self, config):
        self.config = config
        self.file_handler = FileHandler(config.root_directory)
        self.my_socket = None
        self._closing = False

    def bind(self):
        self.my_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.my_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            self.my_socket.bind((self.config.host, self.config.port))
            self.my_socket.listen(5)
        except OSError:
            self.my_socket.close()
            raise

    @property
    def address(self):
        return self.my_socket.getsockname()

    def serve_forever(self):
        logging.warning(f"Listening on port {self.address[1]}, serving {self.file_handler.root}")
        while True:
            try:
                connection, client_address = self.my_socket.accept()
            except OSError:
                if self._closing:
                    break
                raise

            logging.warning(f"Connection from {client_address}")
            clt = ProcessTheClient(connection, client_address, self.file_handler)
            try:
                clt.start()
            except RuntimeError as e:
                logging.error(f"Could not start handler for {client_address}: {e}")
                connection.close()

    def close(self):
        self._closing = True
        if self.my_socket is None:
            return
        try:
            # wakes a thread blocked in accept()
            self.my_socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self.my_socket.close()


def existing_directory(value):
    if not os.path.isdir(value):
        raise argparse.ArgumentTypeError(f"{value} is not a directory")
    return value


def setup_logging(debug=False):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='GET-only file server')
    parser.add_argument('--host', default=DEFAULT_HOST)
    parser.add_argument('--port', type=int, default=DEFAULT_PORT)
    parser.add_argument('--root', type=existing_directory, default=os.getcwd(),
                        help='Directory to serve files from (default: current directory)')
    parser.add_argument('--debug', action='store_true', help='Log every request line')
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.debug)

    server = Server(ServerConfig(args.host, args.port, args.root))
    try:
        server.bind()
    except OSError as e:
        logging.error(f"Failed to create listening socket: {e}")
        sys.exit(1)

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logging.warning("Server shutdown initiated")
    except OSError as e:
        logging.error(f"Server socket shut down unexpectedly: {e}")
        logging.error("Exiting.")
        sys.exit(1)
    finally:
        server.close()


if __name__ == "__main__":
    main()
