"""
File Reader

This module provides the single abstract read operation used for every file
the viewer touches, whatever its origin (local path or file object, remote
URL, cloud storage object), plus the fan-in join used to wait for a group of
asynchronous reads.

Local reads deliver their result synchronously. Remote http(s) URLs are read
asynchronously with QNetworkAccessManager on the Qt event loop. Cloud objects
are read through the CloudStorage collaborator's callback API.

Inputs:
    - FileRef objects
    - Read mode: "bytes", "text" or "data_url"
    - Completion callbacks

Outputs:
    - File contents delivered to callbacks (None on failure)
    - ReadJoin completion with results keyed by token

Requirements:
    - PySide6 for QNetworkAccessManager and signals
    - core.image_file_record for FileRef
"""

import base64
import mimetypes
import os
from typing import Any, Callable, Dict, List, Literal, Optional

from PySide6.QtCore import QObject, QUrl, Signal
from PySide6.QtNetwork import QNetworkAccessManager, QNetworkReply, QNetworkRequest

from core.image_file_record import FileRef


ReadMode = Literal["bytes", "text", "data_url"]

READ_MODES = ("bytes", "text", "data_url")


def guess_mime_type(file_name: str) -> str:
    """
    Guess a MIME type from a file name.

    Args:
        file_name: File name

    Returns:
        MIME type, "application/octet-stream" if unknown
    """
    mime_type, _ = mimetypes.guess_type(file_name)
    return mime_type or "application/octet-stream"


def convert_data(data: bytes, mode: ReadMode, file_name: str = "") -> Any:
    """
    Convert raw bytes to the representation requested by a read mode.

    Args:
        data: Raw file contents
        mode: "bytes", "text" or "data_url"
        file_name: Used to pick the MIME type of data URLs

    Returns:
        bytes, str or data URL string
    """
    if mode == "text":
        return data.decode("utf-8", errors="replace")
    if mode == "data_url":
        encoded = base64.b64encode(data).decode("ascii")
        return f"data:{guess_mime_type(file_name)};base64,{encoded}"
    return data


class ReadToken:
    """
    One pending read inside a ReadJoin.

    A token resolves exactly once; later resolutions are ignored.
    """

    def __init__(self, join: "ReadJoin", key: Any):
        self.join = join
        self.key = key
        self.done = False

    def resolve(self, value: Any) -> None:
        """Record the read result (None for a failed read)."""
        if self.done:
            return
        self.done = True
        self.join._token_resolved(self, value)


class ReadJoin:
    """
    Fan-in join over a fixed number of read tokens.

    The completion callback fires once, after every expected token has
    resolved, with a dict of key -> value. With zero expected tokens it fires
    immediately.
    """

    def __init__(self, expected: int, on_complete: Callable[[Dict[Any, Any]], None]):
        """
        Initialize the join.

        Args:
            expected: Number of tokens that must resolve
            on_complete: Called with {key: value} when all tokens resolved
        """
        self.expected = expected
        self.on_complete = on_complete
        self.results: Dict[Any, Any] = {}
        self.fired = False
        self._issued = 0
        if expected <= 0:
            self._fire()

    def token(self, key: Any = None) -> ReadToken:
        """
        Issue a new token.

        Args:
            key: Result key (defaults to the issue order index)

        Returns:
            ReadToken to resolve when the read completes
        """
        if key is None:
            key = self._issued
        self._issued += 1
        return ReadToken(self, key)

    @property
    def pending(self) -> int:
        """Number of tokens still outstanding."""
        return self.expected - len(self.results)

    def _token_resolved(self, token: ReadToken, value: Any) -> None:
        self.results[token.key] = value
        if len(self.results) >= self.expected:
            self._fire()

    def _fire(self) -> None:
        if self.fired:
            return
        self.fired = True
        self.on_complete(self.results)


class FileReader(QObject):
    """
    Reads FileRefs from local, remote and cloud locations.

    Features:
    - Synchronous local reads (paths or binary file objects)
    - Asynchronous http(s) reads via QNetworkAccessManager
    - Cloud reads through a CloudStorage collaborator
    - Group reads with a fan-in join (read_all)
    """

    # Signals
    read_failed = Signal(str, str)  # url, error message

    def __init__(self, storage=None, parent: Optional[QObject] = None):
        """
        Initialize the file reader.

        Args:
            storage: Optional CloudStorage used for refs carrying a cloud id
            parent: Optional Qt parent
        """
        super().__init__(parent)
        self.storage = storage
        self._network: Optional[QNetworkAccessManager] = None
        self._pending_replies: set = set()

    def read(self, file_ref: FileRef, mode: ReadMode, callback: Callable[[Any], None]) -> None:
        """
        Read a file and deliver its contents.

        Args:
            file_ref: File to read
            mode: "bytes", "text" or "data_url"
            callback: Called with the contents, or None if the read failed
        """
        if mode not in READ_MODES:
            raise ValueError(f"Unknown read mode: {mode}")

        if file_ref.cloud_id and self.storage is not None:
            self._read_cloud(file_ref, mode, callback)
        elif file_ref.remote and file_ref.url.lower().startswith(("http://", "https://")):
            self._read_network(file_ref, mode, callback)
        else:
            self._read_local(file_ref, mode, callback)

    def read_all(self, file_refs: List[FileRef], mode: ReadMode,
                 on_complete: Callable[[List[Any]], None]) -> ReadJoin:
        """
        Read several files and deliver all results at once.

        Args:
            file_refs: Files to read
            mode: Read mode applied to every file
            on_complete: Called with the results in file_refs order (None for failures)

        Returns:
            The ReadJoin tracking the reads
        """
        join = ReadJoin(len(file_refs),
                        lambda results: on_complete([results.get(i) for i in range(len(file_refs))]))
        tokens = [join.token(i) for i in range(len(file_refs))]
        for file_ref, token in zip(file_refs, tokens):
            self.read(file_ref, mode, token.resolve)
        return join

    def _fail(self, file_ref: FileRef, message: str, callback: Callable[[Any], None]) -> None:
        print(f"Error reading {file_ref.url}: {message}")
        self.read_failed.emit(file_ref.url, message)
        callback(None)

    def _read_local(self, file_ref: FileRef, mode: ReadMode, callback: Callable[[Any], None]) -> None:
        handle = file_ref.handle if file_ref.handle is not None else file_ref.url
        try:
            if isinstance(handle, (bytes, bytearray)):
                data = bytes(handle)
            elif isinstance(handle, (str, os.PathLike)):
                with open(handle, "rb") as f:
                    data = f.read()
            else:
                if hasattr(handle, "seek"):
                    handle.seek(0)
                data = handle.read()
        except (OSError, ValueError) as e:
            self._fail(file_ref, str(e), callback)
            return
        callback(convert_data(data, mode, file_ref.name))

    def _read_cloud(self, file_ref: FileRef, mode: ReadMode, callback: Callable[[Any], None]) -> None:
        def on_blob(data: Optional[bytes]) -> None:
            if data is None:
                self._fail(file_ref, f"cloud object {file_ref.cloud_id} unavailable", callback)
                return
            callback(convert_data(data, mode, file_ref.name))

        self.storage.read_blob(file_ref.cloud_id, on_blob)

    def _read_network(self, file_ref: FileRef, mode: ReadMode, callback: Callable[[Any], None]) -> None:
        if self._network is None:
            self._network = QNetworkAccessManager(self)

        reply = self._network.get(QNetworkRequest(QUrl(file_ref.url)))
        self._pending_replies.add(reply)

        def on_finished() -> None:
            self._pending_replies.discard(reply)
            if reply.error() != QNetworkReply.NetworkError.NoError:
                message = reply.errorString()
                reply.deleteLater()
                self._fail(file_ref, message, callback)
                return
            data = bytes(reply.readAll().data())
            reply.deleteLater()
            callback(convert_data(data, mode, file_ref.name))

        reply.finished.connect(on_finished)
