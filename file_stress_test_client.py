import sys
import csv
import time
import logging
import argparse
import statistics
import concurrent.futures

import psutil
import requests

DEFAULT_SERVER_ADDRESS = "http://127.0.0.1:8040"
MEMORY_THRESHOLD = 0.9
CSV_FIELDS = [
    'path', 'client_pool_size', 'requests', 'avg_duration', 'median_duration',
    'min_duration', 'max_duration', 'avg_throughput', 'success_count', 'fail_count'
]


def configure_logging(debug=False):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )


def check_memory_usage(threshold=MEMORY_THRESHOLD):
    memory = psutil.virtual_memory()
    if memory.percent / 100 > threshold:
        logging.warning(f"High memory usage: {memory.percent}%")
        return True
    return False


class FileServerClient:
    """
    Fires concurrent GET requests at the file server and checks that every
    response carries the same bytes.

    If a reference body is given every download is compared against it;
    otherwise the first successful download becomes the reference.
    """

    def __init__(self, server_address=DEFAULT_SERVER_ADDRESS, timeout=60):
        self.server_address = server_address.rstrip('/')
        self.timeout = timeout

    def perform_download(self, path, worker_id, reference=None):
        start_time = time.time()
        try:
            resp = requests.get(f"{self.server_address}{path}", timeout=self.timeout)
            duration = time.time() - start_time

            if resp.status_code != 200:
                logging.error(f"Worker {worker_id}: GET {path} returned {resp.status_code}")
                return self._create_result(worker_id, 0, duration, 'ERROR', f"HTTP {resp.status_code}")

            content_length = int(resp.headers.get('Content-Length', -1))
            if content_length != len(resp.content):
                logging.error(f"Worker {worker_id}: Content-Length {content_length} but got {len(resp.content)} bytes")
                return self._create_result(worker_id, len(resp.content), duration, 'ERROR', 'length mismatch')

            if reference is not None and resp.content != reference:
                logging.error(f"Worker {worker_id}: body differs from reference")
                return self._create_result(worker_id, len(resp.content), duration, 'ERROR', 'body mismatch')

            logging.debug(f"Worker {worker_id}: GET {path} OK in {duration:.3f}s")
            result = self._create_result(worker_id, len(resp.content), duration, 'OK')
            result['body'] = resp.content
            return result
        except requests.exceptions.RequestException as e:
            logging.error(f"Worker {worker_id}: GET exception! {e}")
            return self._create_result(worker_id, 0, time.time() - start_time, 'ERROR', str(e))

    def _create_result(self, worker_id, size, duration, status, error=None):
        result = {
            'worker_id': worker_id,
            'size': size,
            'duration': duration,
            'throughput': size / duration if duration > 0 else 0,
            'status': status,
        }
        if error:
            result['error'] = error
        return result

    def run_stress_test(self, path, client_pool_size, total_requests, reference=None):
        if reference is None:
            first = self.perform_download(path, 0)
            if first['status'] != 'OK':
                logging.error(f"Could not fetch reference copy of {path}: {first.get('error')}")
                return None
            reference = first['body']

        logging.info(f"GET {path} x{total_requests} with {client_pool_size} workers starting...")
        results = []
        with concurrent.futures.ThreadPoolExecutor(max_workers=client_pool_size) as executor:
            futures = [
                executor.submit(self.perform_download, path, i, reference)
                for i in range(total_requests)
            ]
            for future in concurrent.futures.as_completed(futures):
                result = future.result()
                result.pop('body', None)
                results.append(result)
                if check_memory_usage():
                    time.sleep(1)

        return self._calculate_statistics(path, client_pool_size, total_requests, results)

    def _calculate_statistics(self, path, client_pool_size, total_requests, results):
        ok = [r for r in results if r['status'] == 'OK']
        stats = {
            'path': path,
            'client_pool_size': client_pool_size,
            'requests': total_requests,
            'success_count': len(ok),
            'fail_count': len(results) - len(ok),
        }
        if ok:
            durations = [r['duration'] for r in ok]
            stats.update({
                'avg_duration': statistics.mean(durations),
                'median_duration': statistics.median(durations),
                'min_duration': min(durations),
                'max_duration': max(durations),
                'avg_throughput': statistics.mean(r['throughput'] for r in ok),
            })

        logging.info(f"GET {path} complete: {stats['success_count']} succeeded, {stats['fail_count']} failed")
        return stats


def save_results_to_csv(all_stats, csv_filename=None):
    if csv_filename is None:
        csv_filename = f"stress_test_results_{time.strftime('%Y%m%d-%H%M%S')}.csv"

    with open(csv_filename, 'w', newline='') as csvfile:
        writer = csv.DictWriter(csvfile, fieldnames=CSV_FIELDS, restval=0)
        writer.writeheader()
        writer.writerows(all_stats)

    logging.info(f"Results saved to {csv_filename}")
    return csv_filename


def parse_arguments(argv=None):
    parser = argparse.ArgumentParser(description='File Server Stress Test Client')
    parser.add_argument('path', help='Path to request, e.g. /image.png')
    parser.add_argument('--server', default=DEFAULT_SERVER_ADDRESS)
    parser.add_argument('--workers', type=int, nargs='+', default=[1, 5, 50])
    parser.add_argument('--requests', type=int, default=100)
    parser.add_argument('--compare', help='Local copy of the file to compare every body against')
    parser.add_argument('--csv', help='Write the results to this CSV file')
    parser.add_argument('--debug', action='store_true')
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_arguments(argv)
    configure_logging(args.debug)

    reference = None
    if args.compare:
        with open(args.compare, 'rb') as f:
            reference = f.read()

    client = FileServerClient(args.server)
    all_stats = []
    for workers in args.workers:
        stats = client.run_stress_test(args.path, workers, args.requests, reference)
        if stats is None:
            return 1
        all_stats.append(stats)

    if args.csv:
        save_results_to_csv(all_stats, args.csv)
    return 0 if all(s['fail_count'] == 0 for s in all_stats) else 1


if __name__ == "__main__":
    sys.exit(main())
