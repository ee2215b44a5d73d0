#!/usr/bin/env python3
"""
request_logs.py: Elasticsearch store for request logs

This module:
1. Provisions the request log index on first use (idempotent)
2. Appends one document per observed request (best effort)
3. Serves pages of logs, newest first, filtered by the resources they touched
"""

import json
import re
import sys
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import click
from elasticsearch import ApiError, ConnectionTimeout, Elasticsearch, TransportError
from loguru import logger

from ..core.config import Config, ConfigurationError


NON_NEGATIVE_INT = re.compile(r"\+?[0-9]+")


class LogStoreError(Exception):
    """Raised when the request log index cannot be provisioned or searched."""


class LogStoreTimeout(LogStoreError):
    """Raised when Elasticsearch does not answer within the request timeout."""


class LogStoreBadRequest(LogStoreError):
    """Raised when Elasticsearch rejects a search as malformed, e.g. past its result window."""


class InvalidQueryParam(ValueError):
    """Raised when a pagination parameter is not a non-negative integer."""

    def __init__(self, param: str, value: Any):
        super().__init__(f'invalid value "{value}" for query param "{param}"')
        self.param = param
        self.value = value


def to_string_list(value: Any) -> List[str]:
    """Convert a decoded JSON value to a list of strings.

    Raises:
        TypeError: If value is not a list made only of strings
    """
    if not isinstance(value, (list, tuple)):
        raise TypeError(f"cannot convert {type(value).__name__} to a list of strings")
    for item in value:
        if not isinstance(item, str):
            raise TypeError(f"cannot convert element {item!r} of type {type(item).__name__} to string")
    return list(value)


def is_subset(subset: Iterable[str], superset: Iterable[str]) -> bool:
    """Whether every element of subset appears in superset."""
    return set(subset).issubset(superset)


def parse_non_negative_int(param: str, value: Any) -> int:
    # ASCII digits, optionally prefixed with "+"; no spaces, underscores or "-"
    if not isinstance(value, str) or not NON_NEGATIVE_INT.fullmatch(value):
        raise InvalidQueryParam(param, value)
    return int(value)


def _parse_index_config(index_config: Union[str, Mapping[str, Any], None]) -> Dict[str, Any]:
    if index_config is None:
        return {}
    if isinstance(index_config, str):
        try:
            index_config = json.loads(index_config) if index_config.strip() else {}
        except json.JSONDecodeError as e:
            raise LogStoreError(f"invalid index config: {e}")
    if not isinstance(index_config, Mapping):
        raise LogStoreError("invalid index config: expected a JSON object")

    # Only the index-definition sections are forwarded to create-index
    return {
        key: index_config[key]
        for key in ("settings", "mappings", "aliases")
        if key in index_config
    }


class RequestLogStore:
    """
    Handle on one request log index.

    A store binds a single Elasticsearch client to a single index name. It
    holds no mutable state of its own, so one instance is shared by every
    request; concurrent writes and searches rely on Elasticsearch.

    Usage:
        store = RequestLogStore.open("http://localhost:9200", ".logs", config)
        store.index_record({"indices": ["books"], "timestamp": "..."})
        raw = store.get_raw_logs("0", "10", "books")
    """

    SORT_FIELD = "timestamp"

    def __init__(self, client: Elasticsearch, index_name: str, url: Optional[str] = None):
        self.client = client
        self.index_name = index_name
        self.url = url

    @classmethod
    def open(
        cls,
        url: str,
        index_name: str,
        index_config: Union[str, Mapping[str, Any], None] = None,
        client: Optional[Elasticsearch] = None,
        **client_options: Any,
    ) -> "RequestLogStore":
        """
        Connect to Elasticsearch and make sure the log index exists.

        Args:
            url: Single Elasticsearch endpoint; node sniffing is disabled
            index_name: Name of the request log index
            index_config: JSON string or mapping with settings/mappings used
                only when the index has to be created
            client: Pre-built client, mostly for tests
            **client_options: Extra keyword arguments for Elasticsearch()

        Raises:
            LogStoreError: If the existence check or the creation fails
        """
        if client is None:
            try:
                client = Elasticsearch(
                    url,
                    sniff_on_start=False,
                    sniff_on_node_failure=False,
                    **client_options,
                )
            except (ValueError, TypeError) as e:
                raise LogStoreError(f"error while initializing elasticsearch client: {e}")

        store = cls(client, index_name, url=url)

        try:
            exists = bool(client.indices.exists(index=index_name))
        except (ApiError, TransportError) as e:
            raise LogStoreError(f"error while checking if index already exists: {e}")

        if exists:
            logger.info(f'index named "{index_name}" already exists, skipping ...')
            return store

        body = _parse_index_config(index_config)
        try:
            client.indices.create(index=index_name, **body)
        except (ApiError, TransportError) as e:
            # A concurrent opener may have won the race; that is reported, not retried
            raise LogStoreError(f'error while creating index named "{index_name}": {e}')

        logger.info(f'successfully created index named "{index_name}"')
        return store

    def index_record(self, record: Mapping[str, Any]) -> None:
        """
        Append one request log document.

        Failures are logged and dropped: losing a log entry must never fail
        the request it describes.
        """
        try:
            self.client.index(index=self.index_name, document=dict(record))
        except (ApiError, TransportError, TypeError, ValueError) as e:
            logger.error(f"error indexing logs record: {e}")

    def search_logs(self, from_: str, size: str, *indices: str) -> Dict[str, Any]:
        """
        Fetch one page of logs and keep those touching every given index.

        The page window is applied by Elasticsearch before filtering, so the
        result may hold fewer than ``size`` entries even when more matching
        logs exist further down.

        Args:
            from_: Offset of the page, as received from the query string
            size: Page size, as received from the query string
            *indices: Resource names every returned log must mention

        Returns:
            Dict with ``logs`` (raw hits), ``total`` and ``took``

        Raises:
            InvalidQueryParam: If from_ or size is not a non-negative integer
            LogStoreTimeout: If the search times out
            LogStoreBadRequest: If Elasticsearch rejects the page window,
                e.g. from + size beyond index.max_result_window
            LogStoreError: If the search fails or a hit has no usable source
        """
        offset = parse_non_negative_int("from", from_)
        page_size = parse_non_negative_int("size", size)

        try:
            response = self.client.search(
                index=self.index_name,
                from_=offset,
                size=page_size,
                sort=[{self.SORT_FIELD: {"order": "desc"}}],
            )
        except ConnectionTimeout as e:
            raise LogStoreTimeout(f"timeout while searching request logs: {e}")
        except ApiError as e:
            if e.status_code == 400:
                raise LogStoreBadRequest(f"search rejected by request log index: {e}")
            raise LogStoreError(f"error while searching request logs: {e}")
        except TransportError as e:
            raise LogStoreError(f"error while searching request logs: {e}")

        hits = []
        for hit in response["hits"]["hits"]:
            source = hit.get("_source")
            if not isinstance(source, dict):
                raise LogStoreError(
                    f'unable to decode source of log record "{hit.get("_id")}"'
                )

            if "indices" not in source:
                logger.warning(f'unable to find "indices" in log record "{hit.get("_id")}"')
                continue
            try:
                log_indices = to_string_list(source["indices"])
            except TypeError as e:
                logger.warning(f'skipping log record "{hit.get("_id")}": {e}')
                continue

            if not indices or is_subset(indices, log_indices):
                hits.append(hit)

        return {
            "logs": hits,
            "total": len(hits),
            "took": response["took"],
        }

    def get_raw_logs(self, from_: str, size: str, *indices: str) -> bytes:
        """Serialized form of search_logs, ready to be written back as JSON."""
        return json.dumps(self.search_logs(from_, size, *indices), default=str).encode("utf-8")

    def close(self) -> None:
        """Close the underlying client connection pool."""
        self.client.close()


def open_from_config(config: Dict[str, Any]) -> RequestLogStore:
    """Open the store described by the ``elasticsearch``/``request_logs`` config sections."""
    es_config = config.get("elasticsearch", {})
    logs_config = config.get("request_logs", {})
    timeout = es_config.get("request_timeout")
    if timeout is None:
        timeout = Config.elasticsearch_timeout()
    return RequestLogStore.open(
        es_config.get("url", Config.ELASTICSEARCH_URL),
        logs_config.get("index", Config.REQUEST_LOGS_INDEX),
        logs_config.get("index_config"),
        request_timeout=timeout,
    )


@click.command()
@click.option("--config-file", default=None, help="YAML configuration file (default: .arcrc.yaml)")
@click.option("--url", default=None, help="Elasticsearch URL, overrides the configuration")
@click.option("--index", "index_name", default=None, help="Index name, overrides the configuration")
def main(config_file: Optional[str], url: Optional[str], index_name: Optional[str]):
    """Create the request log index if it does not exist yet"""
    click.echo("=== Request Log Index Initialization ===\n")

    try:
        config = Config.load_from_file(config_file)
    except ConfigurationError as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(1)

    if url:
        config["elasticsearch"]["url"] = url
    if index_name:
        config["request_logs"]["index"] = index_name

    try:
        store = open_from_config(config)
    except LogStoreError as e:
        click.echo(f"✗ {e}", err=True)
        click.echo("\nPlease ensure Elasticsearch is running:")
        click.echo("  docker run -p 9200:9200 -e discovery.type=single-node elasticsearch:8.15.0")
        sys.exit(1)

    store.close()
    click.echo(f'\n✓ Index "{store.index_name}" is ready')


if __name__ == "__main__":
    main()
