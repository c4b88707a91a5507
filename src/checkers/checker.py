"""
Certificate Checker Module

Polling loop shared by every source kind: reset the exporter, list resources
in each namespace, and feed each resource through its decoder and exporter.
"""

import fnmatch
import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from certs_parser.facts import CertificateFact
from exporters.exporter import CertificateExporter
from utils.errors import CertExporterError, ListingError, MissingKeyError

logger = logging.getLogger(__name__)


def next_deadline(deadline: float, period: float, now: float) -> float:
    """
    Next tick of a fixed-rate schedule, strictly after now.

    Ticks missed while a long cycle was running are dropped, not replayed.
    """
    deadline += period
    if deadline <= now:
        deadline += ((now - deadline) // period + 1) * period
    return deadline


class CheckerState(Enum):
    IDLE = 'idle'
    POLLING = 'polling'
    STOPPED = 'stopped'


@dataclass
class SourceDescriptor:
    """A listed resource, rebuilt from the API on every poll cycle."""

    kind: str
    namespace: str
    name: str
    data: Dict[str, bytes] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.kind} {self.namespace}/{self.name}"


@dataclass
class PollResult:
    """Counters of one poll cycle."""

    namespaces: int = 0
    resources: int = 0
    exported: int = 0
    skipped: int = 0
    samples: int = 0
    aborted: bool = False


class CertificateChecker(ABC):
    """Base class for the per source kind polling checkers."""

    kind = 'resource'

    def __init__(self, exporter: CertificateExporter, namespaces: Optional[Sequence[str]] = None,
                 label_selector: str = '', polling_period: float = 3600.0,
                 poll_on_start: bool = False):
        """
        Initialize the checker.

        Args:
            exporter: Exporter receiving the certificates of this source kind
            namespaces: Namespaces to scan, empty for all namespaces
            label_selector: Label selector applied to every list call
            polling_period: Seconds between poll cycles
            poll_on_start: Run a cycle immediately instead of after the first period
        """
        self.exporter = exporter
        self.namespaces = list(namespaces or [])
        self.label_selector = label_selector or ''
        self.polling_period = polling_period
        self.poll_on_start = poll_on_start
        self.state = CheckerState.IDLE
        self.last_result: Optional[PollResult] = None

    def run(self, stop_event: threading.Event) -> None:
        """
        Poll at a fixed rate of one cycle per polling_period until stop_event is set.

        Args:
            stop_event: Cancellation signal shared by all checkers
        """
        scope = ', '.join(self.namespaces) if self.namespaces else 'all namespaces'
        logger.info(f"🔍 Starting {self.kind} checker: every {self.polling_period}s in {scope} "
                    f"(selector: '{self.label_selector}')")
        self.state = CheckerState.IDLE
        deadline = time.monotonic() + self.polling_period

        try:
            if self.poll_on_start and not stop_event.is_set():
                self._poll_guarded(stop_event)
            while not stop_event.wait(max(0.0, deadline - time.monotonic())):
                deadline = next_deadline(deadline, self.polling_period, time.monotonic())
                self._poll_guarded(stop_event)
        finally:
            self.state = CheckerState.STOPPED
            logger.info(f"🛑 {self.kind.capitalize()} checker stopped")

    def _poll_guarded(self, stop_event: threading.Event) -> None:
        # A crashed cycle must not end the thread; the next tick retries
        try:
            self.poll(stop_event)
        except Exception:
            logger.exception(f"❌ {self.kind.capitalize()} poll cycle failed, retrying next period")

    def poll(self, stop_event: Optional[threading.Event] = None) -> PollResult:
        """
        Run one poll cycle.

        The exporter is reset exactly once before any resource is exported.
        Errors of one namespace or resource are logged and skipped.

        Args:
            stop_event: Checked between resources, aborts the cycle when set

        Returns:
            PollResult with the counters of this cycle
        """
        self.state = CheckerState.POLLING
        result = PollResult()

        try:
            self.exporter.reset_metrics()

            for namespace in self.namespaces or [None]:
                if self._stopped(stop_event):
                    result.aborted = True
                    break

                try:
                    resources = self._list_resources(namespace)
                except CertExporterError as e:
                    logger.warning(f"⚠️ Skipping namespace {namespace or '<all>'}: {e}")
                    self.exporter.record_error(e)
                    continue
                result.namespaces += 1

                for resource in resources:
                    if self._stopped(stop_event):
                        result.aborted = True
                        break
                    result.resources += 1
                    self._check(resource, result)

                if result.aborted:
                    break
        finally:
            self.state = CheckerState.IDLE

        self.last_result = result
        if result.aborted:
            logger.info(f"🛑 {self.kind.capitalize()} poll cycle aborted after "
                        f"{result.resources} resource(s)")
        else:
            logger.info(f"✅ {self.kind.capitalize()} poll cycle complete: {result.exported} exported, "
                        f"{result.skipped} skipped, {result.samples} certificate(s)")
        return result

    def _check(self, resource: SourceDescriptor, result: PollResult) -> None:
        try:
            samples = self._check_resource(resource)
        except CertExporterError as e:
            e.locate(resource.namespace, resource.name)
            logger.warning(f"⚠️ Skipping {self.kind} {e}")
            self.exporter.record_error(e)
            result.skipped += 1
        except Exception:
            logger.exception(f"❌ Unexpected error checking {resource}")
            result.skipped += 1
        else:
            result.exported += 1
            result.samples += samples

    @staticmethod
    def _stopped(stop_event: Optional[threading.Event]) -> bool:
        return stop_event is not None and stop_event.is_set()

    @abstractmethod
    def _list_resources(self, namespace: Optional[str]) -> List[SourceDescriptor]:
        """
        List candidate resources.

        Args:
            namespace: Namespace to list, None for all namespaces

        Raises:
            ListingError: If the list call fails
        """

    @abstractmethod
    def _check_resource(self, resource: SourceDescriptor) -> int:
        """
        Export the certificates of one resource.

        Returns:
            Number of certificates exported

        Raises:
            CertExporterError: If the resource has to be skipped
        """

    def _listing_error(self, namespace: Optional[str], error: Exception) -> ListingError:
        reason = f"{error.status} {error.reason}" if hasattr(error, 'status') else str(error)
        return ListingError(f"failed to list {self.kind}s: {reason}", namespace=namespace)


class PEMResourceChecker(CertificateChecker):
    """Checker for resources holding PEM bundles under glob-matched data keys."""

    def __init__(self, exporter: CertificateExporter, include_globs: Iterable[str] = ('*.crt',),
                 exclude_globs: Iterable[str] = (), **kwargs):
        super().__init__(exporter, **kwargs)
        self.include_globs = list(include_globs)
        self.exclude_globs = list(exclude_globs)

    def matching_keys(self, data: Dict[str, bytes]) -> List[str]:
        """Return the data keys matching an include glob and no exclude glob, sorted."""
        keys = []
        for key in sorted(data):
            if not any(fnmatch.fnmatchcase(key, pattern) for pattern in self.include_globs):
                continue
            if any(fnmatch.fnmatchcase(key, pattern) for pattern in self.exclude_globs):
                continue
            keys.append(key)
        return keys

    def _check_resource(self, resource: SourceDescriptor) -> int:
        keys = self.matching_keys(resource.data)
        if not keys:
            raise MissingKeyError(
                f"no data key matches {', '.join(self.include_globs)}",
                namespace=resource.namespace, name=resource.name,
            )

        # Decode every key first so a decode error in one key skips the whole resource
        decoded: List[Tuple[str, List[CertificateFact]]] = []
        for key in keys:
            try:
                decoded.append((key, self.exporter.decode(resource.data[key])))
            except CertExporterError as e:
                raise e.locate(resource.namespace, resource.name, key)

        samples = 0
        for key, facts in decoded:
            samples += self.exporter.publish(facts, **self._identity(resource, key))
        return samples

    @abstractmethod
    def _identity(self, resource: SourceDescriptor, key: str) -> Dict[str, str]:
        """Identity labels of one data key of a resource."""
