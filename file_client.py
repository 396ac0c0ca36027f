import sys
import argparse

import requests

SERVER_ADDRESS = "http://127.0.0.1:8040"


def fetch_file(path, server_address=SERVER_ADDRESS, timeout=30):
    if not path.startswith('/'):
        path = '/' + path
    resp = requests.get(f"{server_address}{path}", timeout=timeout)
    resp.raise_for_status()
    return resp


def save_body(resp, output):
    with open(output, 'wb') as f:
        f.write(resp.content)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Fetch a file from the file server')
    parser.add_argument('path', help='Path on the server, e.g. /index.html')
    parser.add_argument('--server', default=SERVER_ADDRESS)
    parser.add_argument('--output', '-o', help='Write the body here instead of stdout')
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    try:
        print(f":: Fetching {args.path}...", file=sys.stderr)
        resp = fetch_file(args.path, args.server)
    except requests.exceptions.HTTPError as err:
        print(f"!! Server replied with {err.response.status_code}: {err.response.reason}", file=sys.stderr)
        return 1
    except requests.exceptions.RequestException as err:
        print(f"!! Fetch failed: {err}", file=sys.stderr)
        return 1

    print(f"++ {resp.status_code} {resp.headers.get('Content-Type')} ({len(resp.content)} bytes)", file=sys.stderr)
    if args.output:
        save_body(resp, args.output)
        print(f"++ Saved to {args.output}", file=sys.stderr)
    else:
        sys.stdout.buffer.write(resp.content)
        sys.stdout.flush()
    return 0


if __name__ == "__main__":
    sys.exit(main())
