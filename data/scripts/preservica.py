from abc import ABC, abstractmethod
from collections import Counter
from enum import Enum
from typing import Dict, Optional, Tuple

import requests
from lxml import etree
from requests.adapters import HTTPAdapter
from requests.auth import HTTPBasicAuth
from tqdm import tqdm

from configs import (
    API_ROOT,
    CURRENT_FETCH_PATH,
    CURRENT_ID_PREFIX,
    CURRENT_UPDATE_PATH,
    LEGACY_FETCH_PATH,
    LEGACY_ID_PREFIX,
    LEGACY_UPDATE_PATH,
    XML_HEADERS,
)
from errors import RemoteLookupError, RemoteUpdateError
from utils import Credentials


class UpdateOutcome(str, Enum):
    UPDATED = "updated"
    SKIPPED = "skipped"
    NOT_FOUND = "not_found"
    FAILED = "failed"
    NO_IDENTIFIER = "no_identifier"


# -----------------------------------------------------
# HTTP session
# -----------------------------------------------------
def make_http_session(credentials: Credentials) -> requests.Session:
    """One authenticated session per run, no retries, single pooled connection."""
    s = requests.Session()
    s.auth = HTTPBasicAuth(credentials.username, credentials.password)
    s.headers.update({"Accept": XML_HEADERS["Accept"]})
    adapter = HTTPAdapter(pool_connections=1, pool_maxsize=1, max_retries=0)
    s.mount("http://", adapter)
    s.mount("https://", adapter)
    return s


def _is_success(response) -> bool:
    return 200 <= response.status_code < 300


def _metadata_elements(entity, namespaced_only: bool = False):
    query = "//*[local-name()='Metadata']"
    if namespaced_only:
        query = "//*[local-name()='Metadata' and namespace-uri()!='']"
    return entity.xpath(query)


# -----------------------------------------------------
# Metadata sinks
# -----------------------------------------------------
class MetadataSink(ABC):
    """
    A Preservica API flavour able to attach a metadata document to an entity.

    Subclasses set the fetch/update path templates and implement
    has_metadata and apply_update.
    """

    fetch_path = None
    update_path = None

    def __init__(self, session: requests.Session, base_url: str):
        self.session = session
        self.base_url = base_url.rstrip("/")

    def url(self, template: str, ref: str) -> str:
        return self.base_url + template.format(ref=ref)

    def fetch(self, ref: str):
        url = self.url(self.fetch_path, ref)
        try:
            response = self.session.get(url)
        except requests.RequestException as e:
            raise RemoteUpdateError(f"Request to {url} failed: {e}") from e

        if not _is_success(response):
            raise RemoteLookupError(f"Entity {ref} not found ({response.status_code})")

        try:
            return etree.fromstring(response.content)
        except etree.XMLSyntaxError as e:
            raise RemoteUpdateError(f"Could not parse entity {ref}: {e}") from e

    @abstractmethod
    def has_metadata(self, entity, namespace: str) -> bool:
        ...

    @abstractmethod
    def apply_update(self, ref: str, entity, document: str, namespace: str) -> None:
        ...

    def _send(self, method: str, ref: str, body: bytes) -> None:
        url = self.url(self.update_path, ref)
        try:
            response = self.session.request(
                method, url, data=body, headers={"Content-Type": XML_HEADERS["Content-Type"]}
            )
        except requests.RequestException as e:
            raise RemoteUpdateError(f"Request to {url} failed: {e}") from e

        if not _is_success(response):
            raise RemoteUpdateError(f"Updating {ref} returned {response.status_code}")


class LegacyEntitySink(MetadataSink):
    """Entity API addressed by file reference; the whole entity is written back."""

    fetch_path = LEGACY_FETCH_PATH
    update_path = LEGACY_UPDATE_PATH

    def has_metadata(self, entity, namespace: str) -> bool:
        return any(m.get("schemaURI") == namespace for m in _metadata_elements(entity))

    def apply_update(self, ref: str, entity, document: str, namespace: str) -> None:
        directories = entity.xpath("//*[local-name()='Directory']")
        if not directories:
            raise RemoteUpdateError(f"Entity {ref} has no Directory element")
        directory = directories[0]

        try:
            fragment = etree.fromstring(document.encode("utf-8"))
        except etree.XMLSyntaxError as e:
            raise RemoteUpdateError(f"Generated metadata for {ref} is not well-formed: {e}") from e

        ns = etree.QName(directory).namespace
        tag = f"{{{ns}}}Metadata" if ns else "Metadata"
        wrapper = etree.Element(tag, nsmap=directory.nsmap)
        wrapper.set("schemaURI", namespace)
        wrapper.append(fragment)
        directory.addnext(wrapper)

        body = etree.tostring(entity.getroottree(), xml_declaration=True, encoding="UTF-8")
        self._send("PUT", ref, body)


class InformationObjectSink(MetadataSink):
    """Entity API addressed by asset id; the document is posted as a new fragment."""

    fetch_path = CURRENT_FETCH_PATH
    update_path = CURRENT_UPDATE_PATH

    def has_metadata(self, entity, namespace: str) -> bool:
        for metadata in _metadata_elements(entity, namespaced_only=True):
            for fragment in metadata.iterchildren(tag=etree.Element):
                if fragment.get("schema") == namespace:
                    return True
        return False

    def apply_update(self, ref: str, entity, document: str, namespace: str) -> None:
        self._send("POST", ref, document.encode("utf-8"))


# -----------------------------------------------------
# Updater
# -----------------------------------------------------
class RepositoryUpdater:
    """Attach each generated document to its Preservica entity, once per namespace."""

    def __init__(self, session: requests.Session, base_url: str, namespace: str,
                 sinks: Optional[Dict[str, MetadataSink]] = None):
        self.session = session
        self.namespace = namespace
        self.sinks = sinks or {
            LEGACY_ID_PREFIX: LegacyEntitySink(session, base_url),
            CURRENT_ID_PREFIX: InformationObjectSink(session, base_url),
        }
        self.outcomes = Counter()

    @classmethod
    def from_credentials(cls, credentials: Credentials, namespace: str) -> "RepositoryUpdater":
        base_url = API_ROOT.format(domain=credentials.domain)
        return cls(make_http_session(credentials), base_url, namespace)

    def select(self, record: Dict[str, str]) -> Tuple[Optional[MetadataSink], Optional[str], Optional[str]]:
        """Pick the sink for a row: fileref columns first, then assetid."""
        for prefix in (LEGACY_ID_PREFIX, CURRENT_ID_PREFIX):
            for header, value in record.items():
                if header.startswith(prefix):
                    return self.sinks[prefix], header, value.strip()
        return None, None, None

    def update(self, record: Dict[str, str], document: str) -> UpdateOutcome:
        outcome = self._update(record, document)
        self.outcomes[outcome] += 1
        return outcome

    def _update(self, record: Dict[str, str], document: str) -> UpdateOutcome:
        sink, column, ref = self.select(record)
        if sink is None:
            return UpdateOutcome.NO_IDENTIFIER
        if not ref:
            tqdm.write(f"Row has no value in {column}, Preservica not updated")
            return UpdateOutcome.NO_IDENTIFIER

        try:
            entity = sink.fetch(ref)
            if sink.has_metadata(entity, self.namespace):
                tqdm.write(f"{ref} already has {self.namespace} metadata, skipping")
                return UpdateOutcome.SKIPPED
            sink.apply_update(ref, entity, document, self.namespace)
        except RemoteLookupError as e:
            tqdm.write(f"⚠️ {e}, Preservica not updated")
            return UpdateOutcome.NOT_FOUND
        except RemoteUpdateError as e:
            tqdm.write(f"❌ {e}")
            return UpdateOutcome.FAILED

        return UpdateOutcome.UPDATED

    def summary(self) -> str:
        counts = ", ".join(f"{o.value}={self.outcomes[o]}" for o in UpdateOutcome)
        return f"Preservica updates: {counts}"

    def close(self) -> None:
        self.session.close()
