"""EPA FHIR client.

This module transmits FHIR Patient resources to the remote Electronic Patient
Record (EPA) system. Every operation converts transport outcomes into a typed
value (SyncResult, payload or None, bool); no requests exception ever reaches
the caller.
"""

import json
import logging
import re
import time
from typing import Any, Callable, Dict, Iterable, Optional

import requests

from hospital_epa.config.schema import EPAConfig, TransportConfig
from hospital_epa.fhir.mapper import FHIRMapper
from hospital_epa.logging_audit import log_audit_event, log_transaction
from hospital_epa.models.patient import PatientRecord
from hospital_epa.models.responses import BulkSyncResult, SyncResult
from hospital_epa.transport.http_client import create_epa_session
from hospital_epa.utils.exceptions import FHIRMappingError, describe_transport_error

logger = logging.getLogger(__name__)

CREATE_SUCCESS_STATUSES = (200, 201)
UPDATE_SUCCESS_STATUSES = (200,)

# Plain-text create responses: one token, as FHIR resource ids are
PLAIN_REMOTE_ID_PATTERN = re.compile(r"[A-Za-z0-9][A-Za-z0-9._:-]{0,63}")

ResultCallback = Callable[[PatientRecord, SyncResult], None]


def _plain_remote_id(text: Optional[str]) -> Optional[str]:
    candidate = (text or "").strip()
    if PLAIN_REMOTE_ID_PATTERN.fullmatch(candidate):
        return candidate
    if candidate:
        logger.warning(f"Ignoring non-id response body from EPA: {candidate[:80]!r}")
    return None


class EPAClient:
    """Client for the EPA FHIR Patient endpoint.

    The base URL and bearer token come from an immutable EPAConfig injected
    at construction; the HTTP session is created once and reused.

    Attributes:
        config: EPA connection settings
        base_url: EPA FHIR API base URL
        timeout: (connect, read) timeout tuple in seconds
        mapper: Record to FHIR converter
        session: HTTP session carrying auth and content headers

    Example:
        >>> client = EPAClient(config.epa, config.transport)
        >>> result = client.create(record)
        >>> if result.success:
        ...     print(f"EPA id: {result.epa_id}")
        ... else:
        ...     print(result.message)
    """

    def __init__(
        self,
        config: EPAConfig,
        transport: Optional[TransportConfig] = None,
        mapper: Optional[FHIRMapper] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        """Initialize the EPA client.

        Args:
            config: EPA connection settings (base URL and API key)
            transport: Timeouts, retries and TLS settings. Uses defaults if not provided.
            mapper: FHIR mapper. A new FHIRMapper is used if not provided.
            session: Preconfigured HTTP session, mainly for tests
        """
        transport = transport or TransportConfig()

        self.config = config
        self.base_url = config.base_url
        self.timeout = (transport.timeout_connect, transport.timeout_read)
        self.mapper = mapper or FHIRMapper()
        self.session = session or create_epa_session(config, transport)

        logger.info(
            f"EPA client initialized: base_url={self.base_url}, "
            f"timeout={self.timeout[0]}s connect / {self.timeout[1]}s read"
        )

    def create(self, record: PatientRecord) -> SyncResult:
        """Send a patient to the EPA as a new FHIR Patient.

        Args:
            record: Patient to transmit

        Returns:
            SyncResult with the EPA-assigned id on HTTP 200/201, otherwise a
            failed result carrying the response body or transport error

        Raises:
            FHIRMappingError: If the record lacks fields required for FHIR
        """
        payload = self.mapper.to_fhir_json(record)
        url = f"{self.base_url}/Patient"
        logger.info(f"Sending patient {record.id} to EPA")

        try:
            response = self.session.post(url, data=payload.encode("utf-8"), timeout=self.timeout)
        except requests.RequestException as e:
            return self._transport_failure("EPA_CREATE", payload, record, e)

        log_transaction(
            "EPA_CREATE",
            payload,
            response.text,
            status="success" if response.status_code in CREATE_SUCCESS_STATUSES else "failure",
            status_code=response.status_code,
        )

        if response.status_code not in CREATE_SUCCESS_STATUSES:
            logger.warning(f"EPA rejected patient {record.id}: HTTP {response.status_code}")
            return SyncResult.failed(
                f"EPA transfer failed (HTTP {response.status_code}): {response.text}"
            )

        epa_id = self._extract_remote_id(response)
        if not epa_id:
            logger.warning(f"EPA accepted patient {record.id} but returned no id")
            return SyncResult.failed("EPA transfer failed: response did not contain a patient id")

        logger.info(f"Patient {record.id} sent to EPA, EPA id {epa_id}")
        return SyncResult.ok(epa_id, "Patient transferred to EPA successfully")

    def update(self, record: PatientRecord, remote_id: str) -> SyncResult:
        """Replace an existing FHIR Patient in the EPA.

        Args:
            record: Patient to transmit
            remote_id: EPA id of the existing resource

        Returns:
            SyncResult carrying remote_id on HTTP 200, otherwise a failed result

        Raises:
            FHIRMappingError: If the record lacks fields required for FHIR
        """
        document = self.mapper.to_fhir_dict(record)
        document["id"] = remote_id
        payload = json.dumps(document, ensure_ascii=False)
        url = f"{self.base_url}/Patient/{remote_id}"
        logger.info(f"Updating patient {record.id} in EPA (EPA id {remote_id})")

        try:
            response = self.session.put(url, data=payload.encode("utf-8"), timeout=self.timeout)
        except requests.RequestException as e:
            return self._transport_failure("EPA_UPDATE", payload, record, e)

        success = response.status_code in UPDATE_SUCCESS_STATUSES
        log_transaction(
            "EPA_UPDATE",
            payload,
            response.text,
            status="success" if success else "failure",
            status_code=response.status_code,
        )

        if not success:
            logger.warning(
                f"EPA update of patient {record.id} failed: HTTP {response.status_code}"
            )
            return SyncResult.failed(
                f"EPA update failed (HTTP {response.status_code}): {response.text}"
            )

        logger.info(f"Patient {record.id} updated in EPA")
        return SyncResult.ok(remote_id, "Patient updated in EPA successfully")

    def fetch(self, remote_id: str) -> Optional[Dict[str, Any]]:
        """Retrieve a FHIR Patient from the EPA.

        Args:
            remote_id: EPA id of the resource

        Returns:
            Parsed FHIR JSON payload on HTTP 200, None when the resource is
            absent, the response is not JSON, or the EPA is unreachable
        """
        url = f"{self.base_url}/Patient/{remote_id}"
        logger.info(f"Fetching patient with EPA id {remote_id}")

        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"EPA fetch failed: {describe_transport_error(e)}")
            return None

        log_transaction(
            "EPA_FETCH",
            "",
            response.text,
            status="success" if response.status_code == 200 else "failure",
            status_code=response.status_code,
        )

        if response.status_code != 200:
            logger.warning(f"Patient {remote_id} not found in EPA (HTTP {response.status_code})")
            return None

        try:
            payload = response.json()
        except ValueError:
            logger.warning(f"EPA returned a non-JSON body for patient {remote_id}")
            return None

        if not isinstance(payload, dict):
            logger.warning(f"EPA returned a non-object body for patient {remote_id}")
            return None
        return payload

    def health_check(self) -> bool:
        """Check whether the EPA health endpoint answers HTTP 200."""
        try:
            response = self.session.get(f"{self.base_url}/health", timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"EPA connection test failed: {describe_transport_error(e)}")
            return False

        if response.status_code != 200:
            logger.warning(f"EPA health check returned HTTP {response.status_code}")
            return False
        return True

    def bulk_sync(
        self,
        records: Iterable[PatientRecord],
        on_result: Optional[ResultCallback] = None,
    ) -> BulkSyncResult:
        """Send each record to the EPA with create, one after another.

        A failure for one record never stops the remaining records. A record
        that cannot be mapped to FHIR counts as a failure.

        Args:
            records: Patients to transmit, in order
            on_result: Called with (record, result) after each attempt

        Returns:
            BulkSyncResult whose counts sum to the number of records
        """
        success_count = 0
        failed_count = 0
        start_time = time.time()

        for record in records:
            try:
                result = self.create(record)
            except FHIRMappingError as e:
                logger.error(f"Patient {record.id} skipped in bulk sync: {e}")
                result = SyncResult.failed(f"Invalid patient data: {e}")

            if result.success:
                success_count += 1
            else:
                failed_count += 1

            if on_result is not None:
                on_result(record, result)

        bulk_result = BulkSyncResult(success_count=success_count, failed_count=failed_count)
        log_audit_event(
            "EPA_BULK_SYNC",
            {
                "status": "success" if failed_count == 0 else "failure",
                "record_count": bulk_result.total,
                "duration": time.time() - start_time,
                "synced": success_count,
                "failed": failed_count,
            },
        )
        return bulk_result

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.session.close()

    def __enter__(self) -> "EPAClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _transport_failure(
        self,
        transaction_type: str,
        payload: str,
        record: PatientRecord,
        error: requests.RequestException,
    ) -> SyncResult:
        message = describe_transport_error(error)
        logger.error(f"EPA transfer of patient {record.id} failed: {message}")
        log_transaction(transaction_type, payload, None, status="failure")
        return SyncResult.failed(message)

    @staticmethod
    def _extract_remote_id(response: requests.Response) -> Optional[str]:
        """Read the EPA id from a create response.

        A JSON body contributes its "id" element. A plain-text body counts
        only if it is a single short id token; an error page or any other
        free text yields None.
        """
        try:
            body = response.json()
        except ValueError:
            return _plain_remote_id(response.text)

        if isinstance(body, dict):
            remote_id = body.get("id")
            return str(remote_id) if remote_id not in (None, "") else None
        if isinstance(body, str):
            return _plain_remote_id(body)
        if isinstance(body, int) and not isinstance(body, bool):
            return str(body)
        return None
