"""Keybox XML import.

Parses the vendor keybox format into KeyRecords in a single streaming pass
and stores the result as a flat JSON blob in a secure-settings slot.

The XML is authored by external tooling and may mix unsupported algorithms
or non-PEM material with valid keys, so the parser salvages every valid
<Key> block instead of rejecting the whole document:

    <AndroidAttestation>
      <NumberOfKeyboxes>1</NumberOfKeyboxes>
      <Keybox DeviceID="...">
        <Key algorithm="ecdsa">
          <PrivateKey format="pem">...</PrivateKey>
          <CertificateChain>
            <NumberOfCertificates>2</NumberOfCertificates>
            <Certificate format="pem">...</Certificate>
            <Certificate format="pem">...</Certificate>
          </CertificateChain>
        </Key>
        <Key algorithm="rsa">...</Key>
      </Keybox>
    </AndroidAttestation>
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Iterator

from device.store import KeyValueStore
from keybox.blob import save_keybox_blob, serialize_keybox
from spoof.errors import EmptyResultError, FileTypeError, IoError, ParseError
from spoof.models import ImportedKeybox, KeyAlgorithm, KeyboxDocument, KeyRecord

logger = logging.getLogger(__name__)

TAG_NUMBER_OF_KEYBOXES = "NumberOfKeyboxes"
TAG_KEY = "Key"
TAG_PRIVATE_KEY = "PrivateKey"
TAG_CERTIFICATE = "Certificate"
ATTR_ALGORITHM = "algorithm"
ATTR_FORMAT = "format"
FORMAT_PEM = "pem"

MIME_TYPE_XML = "text/xml"
BYTE_ORDER_MARK = "\ufeff"
FEED_CHUNK_SIZE = 16 * 1024

# XML algorithm attribute (lowercased) -> blob prefix
ALGORITHMS: dict[str, KeyAlgorithm] = {
    "ecdsa": KeyAlgorithm.EC,
    "rsa": KeyAlgorithm.RSA,
}


def parse_keybox(xml_text: str) -> KeyboxDocument:
    """Parse keybox XML into the records that passed every gate.

    A <Key> is kept only when its algorithm is ecdsa/rsa and it carries a
    PEM <PrivateKey>. Certificates that are not PEM are dropped one by one
    without affecting the owning key. A document with no valid keys yields
    an empty record list.

    Args:
        xml_text: Keybox document with any byte-order mark already removed.

    Returns:
        KeyboxDocument with records in document order.

    Raises:
        ParseError: If the XML is malformed.
    """
    parser = ET.XMLPullParser(events=("start", "end"))
    records: list[KeyRecord] = []
    declared_count: int | None = None

    algorithm: KeyAlgorithm | None = None
    private_key: str | None = None
    certificates: list[str] = []
    # Gate decisions taken on open, applied when the element's text is complete
    capture_private_key = False
    capture_certificate = False

    try:
        for event, elem in _pull_events(parser, xml_text):
            tag = _local_name(elem.tag)
            if event == "start":
                if tag == TAG_KEY:
                    algorithm = _algorithm_of(elem)
                    private_key = None
                    certificates.clear()
                elif tag == TAG_PRIVATE_KEY:
                    capture_private_key = algorithm is not None and _is_pem(elem)
                    if not capture_private_key:
                        logger.warning("Skipping key due to invalid format or algorithm")
                        private_key = None
                elif tag == TAG_CERTIFICATE:
                    capture_certificate = algorithm is not None and _is_pem(elem)
                    if not capture_certificate:
                        logger.warning("Skipping certificate due to invalid format or algorithm")
                continue

            if tag == TAG_NUMBER_OF_KEYBOXES:
                try:
                    declared_count = int((elem.text or "").strip())
                except ValueError:
                    pass
            elif tag == TAG_PRIVATE_KEY and capture_private_key:
                private_key = _text_only(elem)
                capture_private_key = False
            elif tag == TAG_CERTIFICATE and capture_certificate:
                certificates.append(_text_only(elem))
                capture_certificate = False
            elif tag == TAG_KEY:
                if algorithm is not None and private_key is not None:
                    records.append(KeyRecord(
                        algorithm=algorithm,
                        private_key=private_key,
                        certificates=list(certificates),
                    ))
                algorithm = None
                private_key = None
                certificates.clear()
                elem.clear()
    except ET.ParseError as exc:
        raise ParseError(f"XML parsing failed: {exc}") from exc

    if declared_count is not None and declared_count != len(records):
        logger.debug(
            "NumberOfKeyboxes declares %d, parsed %d valid keys",
            declared_count, len(records),
        )

    return KeyboxDocument(records=records, declared_count=declared_count)


def is_xml_file(path: Path, content_type: str | None = None) -> bool:
    """Accept a path ending in .xml or an explicit text/xml content type."""
    return path.name.lower().endswith(".xml") or content_type == MIME_TYPE_XML


class KeyboxImporter:
    """Imports keybox files into a secure-settings slot.

    Args:
        store: Secure settings store receiving the blob.
        setting: Name of the slot holding the blob.
    """

    def __init__(self, store: KeyValueStore, setting: str) -> None:
        self.store: KeyValueStore = store
        self.setting: str = setting

    def import_file(self, path: Path, content_type: str | None = None) -> ImportedKeybox:
        """Read, parse, serialize and persist a keybox file.

        Raises:
            FileTypeError: If the file is not XML.
            IoError: If the file cannot be read.
            ParseError: If the XML is malformed.
            EmptyResultError: If no valid key was found.
        """
        if not is_xml_file(path, content_type):
            raise FileTypeError(f"{path.name} is not an XML file")

        try:
            raw = path.read_bytes()
        except OSError as exc:
            raise IoError(f"Failed to read {path}: {exc}") from exc

        xml_text = raw.decode("utf-8", errors="replace").replace(BYTE_ORDER_MARK, "")
        return self.import_text(xml_text)

    def import_text(self, xml_text: str) -> ImportedKeybox:
        document = parse_keybox(xml_text)
        if not document.records:
            raise EmptyResultError("No valid keys found in keybox XML")

        blob = serialize_keybox(document.records)
        save_keybox_blob(self.store, self.setting, blob)
        logger.info(
            "Stored %d key(s) in %s: %s",
            len(document.records),
            self.setting,
            ", ".join(r.algorithm.value for r in document.records),
        )
        return ImportedKeybox(records=document.records, blob=blob)


def _pull_events(
    parser: ET.XMLPullParser, xml_text: str
) -> Iterator[tuple[str, ET.Element]]:
    for start in range(0, len(xml_text), FEED_CHUNK_SIZE):
        parser.feed(xml_text[start:start + FEED_CHUNK_SIZE])
        yield from parser.read_events()
    parser.close()
    yield from parser.read_events()


def _algorithm_of(elem: ET.Element) -> KeyAlgorithm | None:
    value = elem.get(ATTR_ALGORITHM)
    if value is None:
        return None
    return ALGORITHMS.get(value.lower())


def _is_pem(elem: ET.Element) -> bool:
    value = elem.get(ATTR_FORMAT)
    return value is not None and value.lower() == FORMAT_PEM


def _text_only(elem: ET.Element) -> str:
    """Return the stripped text of an element that must not have children."""
    if len(elem):
        raise ParseError(f"<{elem.tag}> must contain only text")
    return (elem.text or "").strip()


def _local_name(tag: str) -> str:
    # Tags are matched without namespaces: "{urn:x}Key" -> "Key"
    return tag.rpartition("}")[2]
