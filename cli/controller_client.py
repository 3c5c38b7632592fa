"""HTTP client for communicating with the weekvault API."""

import mimetypes
import re
import sys
import time
import uuid
from contextlib import ExitStack
from pathlib import Path
from typing import Optional

import httpx

from common.logging_config import get_logger
from cli.config import Config
from cli.constants import DOWNLOADS_DIR, GREEN, RESET, UPLOADS_DIR
from cli.utils import describe_content_range, format_size, unsatisfied_length

logger = get_logger(__name__)

_FILENAME_RE = re.compile(r'filename="([^"]*)"')


class ControllerClient:
    """HTTP client for the weekvault API with retry logic and error handling."""

    def __init__(self, config: Config):
        """
        Initialize controller client.

        Args:
            config: Configuration instance
        """
        self.config = config
        self.session = httpx.Client(
            base_url=config.get_base_url(),
            timeout=config.get_timeout()
        )
        self.request_id = None
        logger.info(f"Initialized ControllerClient [base_url={config.get_base_url()}]")

    def _calculate_upload_timeout(self, total_size: int) -> float:
        """
        Calculate timeout for an upload based on its size.

        Args:
            total_size: Combined size of all files in bytes

        Returns:
            Timeout in seconds (30s base + 0.1s per MB)
        """
        base_timeout = 30.0
        size_mb = total_size / (1024 * 1024)
        return base_timeout + size_mb * 0.1

    def _normalize_upload_path(self, file_path: str) -> tuple[Path | None, str | None]:
        """
        Validate the mandatory uploads/ prefix and resolve the local path.

        Args:
            file_path: Input file path (must start with uploads/ prefix)

        Returns:
            Tuple of (resolved_path, error_message)
            error_message is None if validation succeeds
        """
        base_dir = self.config.get_uploads_dir().resolve()
        prefix = f"{UPLOADS_DIR}/"

        path_str = file_path.strip()
        if not path_str.startswith(prefix):
            return None, f"Upload path must start with '{prefix}' - did you mean '{prefix}{path_str}'?"

        try:
            resolved_path = (base_dir / path_str[len(prefix):]).resolve()
            resolved_path.relative_to(base_dir)
        except (OSError, RuntimeError, ValueError):
            return None, f"Invalid path: '{file_path}' is outside uploads directory"

        if not resolved_path.is_file():
            return None, f"File not found: {file_path}"

        return resolved_path, None

    def _normalize_download_path(self, output_path: str, filename: str) -> tuple[Path | None, str | None]:
        """
        Validate the mandatory downloads/ prefix when an output path is given.

        Args:
            output_path: Output path (must start with downloads/ prefix if provided)
            filename: Name used when no output path is given or it is a directory

        Returns:
            Tuple of (output_path, error_message)
            error_message is None if validation succeeds
        """
        base_dir = self.config.get_downloads_dir().resolve()
        prefix = f"{DOWNLOADS_DIR}/"

        if output_path:
            path_str = output_path.strip()
            if not path_str.startswith(prefix):
                return None, f"Download output path must start with '{prefix}' - did you mean '{prefix}{path_str}'?"

            output_file = base_dir / path_str[len(prefix):]
            try:
                if output_file.exists() and output_file.is_dir():
                    output_file = output_file / filename
                output_file = output_file.resolve()
                output_file.relative_to(base_dir)
            except (OSError, RuntimeError, ValueError):
                return None, f"Invalid path: '{output_path}' is outside downloads directory"
        else:
            output_file = base_dir / Path(filename).name

        output_file.parent.mkdir(parents=True, exist_ok=True)
        return output_file, None

    def _request_with_retry(
        self,
        method: str,
        endpoint: str,
        max_retries: Optional[int] = None,
        **kwargs
    ) -> httpx.Response:
        """
        Make HTTP request with retry logic on 5xx errors and network failures.

        Args:
            method: HTTP method (GET, POST, DELETE, etc.)
            endpoint: API endpoint path
            max_retries: Max retry attempts (uses config default if None)
            **kwargs: Additional arguments to pass to httpx request

        Returns:
            HTTP response object

        Raises:
            ConnectionError: If max retries exceeded or connection fails
        """
        retry_config = self.config.get_retry_config()
        max_retries = max_retries if max_retries is not None else retry_config['max_retries']
        backoff = retry_config['retry_backoff_multiplier']

        last_exception = None
        kwargs['headers'] = self._headers(kwargs.get('headers'))

        logger.debug(f"Making request: {method} {endpoint} [request_id={self.request_id}]")

        for attempt in range(max_retries + 1):
            try:
                response = self.session.request(method, endpoint, **kwargs)

                logger.debug(
                    f"Response received: {method} {endpoint} status={response.status_code} [request_id={self.request_id}]"
                )

                if 400 <= response.status_code < 500:
                    logger.warning(
                        f"Client error: {method} {endpoint} status={response.status_code} [request_id={self.request_id}]"
                    )
                    return response

                if response.status_code >= 500 and attempt < max_retries:
                    delay = backoff ** attempt
                    logger.warning(
                        f"Server error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} status={response.status_code}, retrying in {delay}s [request_id={self.request_id}]"
                    )
                    time.sleep(delay)
                    continue

                return response

            except (httpx.ConnectError, httpx.TimeoutException) as e:
                last_exception = e
                if attempt < max_retries:
                    delay = backoff ** attempt
                    logger.warning(
                        f"Network error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} error={type(e).__name__}, retrying in {delay}s [request_id={self.request_id}]"
                    )
                    time.sleep(delay)
                    continue
                logger.error(
                    f"Network error (max retries exceeded): {method} {endpoint} error={e} [request_id={self.request_id}]"
                )

        if isinstance(last_exception, httpx.ConnectError):
            raise ConnectionError("Cannot connect to weekvault server. Is it running?")
        if isinstance(last_exception, httpx.TimeoutException):
            raise ConnectionError("Request timed out. Server may be overloaded.")
        raise ConnectionError("Max retries exceeded")

    def _headers(self, extra: Optional[dict] = None) -> dict:
        """Request id and caller identity headers, merged with extra headers."""
        self.request_id = str(uuid.uuid4())
        headers = {
            'X-Request-ID': self.request_id,
            'X-Caller-Id': self.config.get_caller_id(),
        }
        if extra:
            headers.update(extra)
        return headers

    def _format_error(self, response: httpx.Response) -> str:
        """
        Map HTTP errors to user-friendly messages.

        Args:
            response: HTTP response object

        Returns:
            User-friendly error message
        """
        try:
            error_data = response.json()
            detail = error_data.get('detail', 'Unknown error')
            code = error_data.get('code', 'UNKNOWN')
        except ValueError:
            detail = response.text if response.text else 'Unknown error'
            code = 'UNKNOWN'

        if not isinstance(detail, str):
            detail = str(detail)

        error_messages = {
            'NOT_FOUND': f'Not found: {detail}',
            'DUPLICATE': f'Already exists: {detail}',
            'RANGE_NOT_SATISFIABLE': f'Range not satisfiable: {detail}',
            'INVALID_IDENTIFIER': f'Invalid id: {detail}',
            'INVALID_REQUEST': f'Invalid request: {detail}',
            'UPLOAD_TOO_LARGE': f'Upload too large: {detail}',
            'STORAGE_UNAVAILABLE': 'Storage is currently unavailable. Please try again later.',
            'DEADLINE_EXCEEDED': 'The server gave up before the transfer finished.',
        }

        if code in error_messages:
            return error_messages[code]

        status_messages = {
            400: 'Bad request',
            404: 'Not found',
            409: 'Conflict',
            413: 'File too large',
            416: 'Range not satisfiable',
            422: 'Invalid input',
            500: 'Server error',
            503: 'Service unavailable',
            504: 'Server timeout',
        }

        message = status_messages.get(response.status_code, detail)
        return f"{message} (Code: {code})" if code != 'UNKNOWN' else message

    def _format_week(self, week: dict) -> str:
        lines = [
            f"Week {week['week_number']}: {week['summary']}",
            f"  ID: {week['week_id']}",
            f"  Updated: {week['updated_at']}",
        ]
        photos = week.get('photos', [])
        lines.append(f"  Photos ({len(photos)}):")
        for file_id in photos:
            lines.append(f"    - {file_id}")
        lines.append(f"  Report: {week.get('report_file_id') or '(none)'}")
        return '\n'.join(lines)

    def list_weeks(self, order: str = "asc") -> str:
        """
        List weeks ordered by week number.

        Returns:
            Formatted table of weeks
        """
        try:
            response = self._request_with_retry('GET', '/weeks', params={'order': order})
            if response.status_code != 200:
                return f"Error: {self._format_error(response)}"

            data = response.json()
            if data['count'] == 0:
                return "No weeks found."

            output = [f"Found {data['count']} week(s):\n"]
            output.append(f"{'Week':<6} {'Photos':<7} {'Report':<7} Summary")
            output.append("-" * 60)
            for week in data['weeks']:
                summary = week['summary'] if len(week['summary']) <= 40 else week['summary'][:37] + '...'
                has_report = 'yes' if week.get('report_file_id') else 'no'
                output.append(f"{week['week_number']:<6} {len(week['photos']):<7} {has_report:<7} {summary}")
            return '\n'.join(output)

        except ConnectionError as e:
            return f"Error: {e}"
        except Exception as e:
            logger.error(f"Unexpected error listing weeks: {e}", exc_info=True)
            return f"Unexpected error listing weeks: {e}"

    def get_week(self, week_number: int) -> str:
        """
        Show one week with the file ids of its assets.
        """
        try:
            response = self._request_with_retry('GET', f'/weeks/number/{week_number}')
            if response.status_code != 200:
                return f"Error: {self._format_error(response)}"
            return self._format_week(response.json())

        except ConnectionError as e:
            return f"Error: {e}"
        except Exception as e:
            logger.error(f"Unexpected error fetching week: {e}", exc_info=True)
            return f"Unexpected error fetching week: {e}"

    def upload_week(
        self,
        week_number: int,
        summary: str,
        photo_paths: list[str],
        report_path: str | None = None,
    ) -> str:
        """
        Create a week by uploading its photos and optional report.

        Args:
            week_number: Week number to create
            summary: Week summary
            photo_paths: Photo paths with uploads/ prefix
            report_path: Optional report path with uploads/ prefix

        Returns:
            Formatted result with the new week's file ids
        """
        resolved = []
        for role, file_path in [('photos', p) for p in photo_paths] + (
            [('reportPdf', report_path)] if report_path else []
        ):
            path, error = self._normalize_upload_path(file_path)
            if error:
                return f"Error: {error}"
            resolved.append((role, path))

        total_size = sum(path.stat().st_size for _, path in resolved)
        upload_timeout = self._calculate_upload_timeout(total_size)

        try:
            with ExitStack() as stack:
                files = []
                for role, path in resolved:
                    content_type = mimetypes.guess_type(path.name)[0] or 'application/octet-stream'
                    handle = stack.enter_context(open(path, 'rb'))
                    files.append((role, (path.name, handle, content_type)))

                sys.stdout.write(f"Uploading week {week_number}: {len(resolved)} file(s), {format_size(total_size)}\n")
                sys.stdout.flush()

                response = self._request_with_retry(
                    'POST',
                    '/weeks',
                    max_retries=0,
                    data={'weekNumber': str(week_number), 'summary': summary},
                    files=files,
                    timeout=upload_timeout,
                )

            if response.status_code == 201:
                return f"{GREEN}Created{RESET} " + self._format_week(response.json())
            return f"Error creating week {week_number}: {self._format_error(response)}"

        except ConnectionError as e:
            return f"Error: {e}"
        except IOError as e:
            return f"Error reading file: {e}"
        except Exception as e:
            logger.error(f"Unexpected error uploading week: {e}", exc_info=True)
            return f"Unexpected error uploading week: {e}"

    def delete_week(self, week_number: int) -> str:
        """
        Delete a week and report per-file cleanup results.
        """
        try:
            response = self._request_with_retry('DELETE', f'/weeks/number/{week_number}')
            if response.status_code != 200:
                return f"Error: {self._format_error(response)}"

            data = response.json()
            output = [data['message']]
            output.append(f"Removed files: {len(data['removed'])}")
            if data['failed']:
                output.append(f"Failed cleanups: {len(data['failed'])}")
                for item in data['failed']:
                    output.append(f"  - {item['role']} {item['file_id']}: {item.get('error') or 'unknown error'}")
            return '\n'.join(output)

        except ConnectionError as e:
            return f"Error: {e}"
        except Exception as e:
            logger.error(f"Unexpected error deleting week: {e}", exc_info=True)
            return f"Unexpected error deleting week: {e}"

    def download(self, file_id: str, output_path: str | None = None, byte_range: str | None = None) -> str:
        """
        Download a file (or a byte range of it) with progress feedback.

        Args:
            file_id: File id to download
            output_path: Optional output path with downloads/ prefix
            byte_range: Optional "start-end" or "start-" range

        Returns:
            Success message with download details
        """
        headers = self._headers()
        if byte_range:
            headers['Range'] = f"bytes={byte_range}"

        try:
            with self.session.stream('GET', f'/files/{file_id}', headers=headers) as response:
                if response.status_code not in (200, 206):
                    response.read()
                    message = f"Error: {self._format_error(response)}"
                    length = unsatisfied_length(response.headers.get('Content-Range'))
                    if response.status_code == 416 and length is not None:
                        message += f" (file is {length} bytes, {format_size(length)})"
                    return message

                match = _FILENAME_RE.search(response.headers.get('Content-Disposition', ''))
                filename = match.group(1) if match else file_id

                output_file, error = self._normalize_download_path(output_path or "", filename)
                if error:
                    response.read()
                    return f"Error: {error}"

                total_size = int(response.headers.get('Content-Length', 0))
                downloaded = 0

                with open(output_file, 'wb') as f:
                    for chunk in response.iter_bytes(chunk_size=8192):
                        f.write(chunk)
                        downloaded += len(chunk)
                        if total_size > 0:
                            progress = (downloaded / total_size) * 100
                            sys.stdout.write(
                                f"\rDownloading {filename}: {format_size(downloaded)} / {format_size(total_size)} ({GREEN}{progress:.1f}%{RESET})"
                            )
                        else:
                            sys.stdout.write(f"\rDownloading {filename}: {format_size(downloaded)}")
                        sys.stdout.flush()

                sys.stdout.write('\n')
                sys.stdout.flush()

                result = f"Downloaded: {filename} ({format_size(downloaded)})"
                if response.status_code == 206:
                    result += f"\n{describe_content_range(response.headers.get('Content-Range')) or 'Range: unknown'}"
                return f"{result}\nSaved to: {output_file.absolute()}"

        except httpx.ConnectError:
            return "Error: Cannot connect to weekvault server. Is it running?"
        except httpx.TimeoutException:
            return "Error: Request timed out. Server may be overloaded."
        except IOError as e:
            return f"Error writing file: {e}"
        except Exception as e:
            logger.error(f"Unexpected error downloading file: {e}", exc_info=True)
            return f"Unexpected error downloading file: {e}"

    def _format_audit(self, data: dict) -> str:
        stats = data['stats']
        output = [
            f"Health score: {data['health_score']}%",
            f"Files: {stats['valid_files']}/{stats['total_files']} valid, "
            f"{stats['incomplete_files']} incomplete, {stats['orphaned_files']} orphaned, "
            f"{stats['stray_chunk_sets']} stray chunk sets",
            f"Weeks: {stats['valid_weeks']}/{stats['total_weeks']} valid, "
            f"{stats['dangling_references']} dangling references",
        ]
        warnings = data.get('warnings', [])
        if warnings:
            output.append(f"\nIssues ({len(warnings)}):")
            for warning in warnings[:10]:
                output.append(f"  - [{warning['kind']}] {warning['message']}")
            if len(warnings) > 10:
                output.append(f"  ... and {len(warnings) - 10} more")
        actions = data.get('actions', [])
        if actions:
            output.append(f"\nActions ({len(actions)}):")
            for action in actions:
                output.append(f"  - {action}")
        return '\n'.join(output)

    def audit(self) -> str:
        """
        Run a read-only integrity audit.
        """
        try:
            response = self._request_with_retry('GET', '/admin/audit')
            if response.status_code != 200:
                return f"Error: {self._format_error(response)}"
            return self._format_audit(response.json())

        except ConnectionError as e:
            return f"Error: {e}"
        except Exception as e:
            logger.error(f"Unexpected error running audit: {e}", exc_info=True)
            return f"Unexpected error running audit: {e}"

    def repair(self, strip_dangling: bool = False, delete_orphans: bool = False) -> str:
        """
        Run an audit followed by the requested repairs.
        """
        try:
            response = self._request_with_retry(
                'POST',
                '/admin/repair',
                max_retries=0,
                json={'strip_dangling': strip_dangling, 'delete_orphans': delete_orphans},
            )
            if response.status_code != 200:
                return f"Error: {self._format_error(response)}"

            data = response.json()
            result = self._format_audit(data)
            if not data.get('actions'):
                result += "\nNo repairs performed."
            return result

        except ConnectionError as e:
            return f"Error: {e}"
        except Exception as e:
            logger.error(f"Unexpected error running repair: {e}", exc_info=True)
            return f"Unexpected error running repair: {e}"

    def health(self) -> str:
        """
        Check service readiness and show row counts.
        """
        try:
            response = self._request_with_retry('GET', '/ready', max_retries=0)
            data = response.json()
            if response.status_code != 200 or not data.get('ready'):
                return f"Service not ready: {data.get('database', 'unknown')}"

            counts = data.get('counts', {})
            return (
                f"Service ready (bucket: {data.get('bucket')})\n"
                f"Weeks: {counts.get('weeks', 0)}, files: {counts.get('files', 0)}, "
                f"chunks: {counts.get('chunks', 0)}"
            )

        except ConnectionError as e:
            return f"Error: {e}"
        except ValueError:
            return "Error: Unexpected response from server"

    def close(self) -> None:
        """Close the HTTP session."""
        self.session.close()
