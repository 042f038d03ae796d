"""
Queue Checker — task queues, worker pools, message brokers, concurrency limiters.
"""

from __future__ import annotations

from racewatch.core.atom_utils import extract_queue_name
from racewatch.core.mitigation.catalogue import match_catalogue
from racewatch.models.mitigation_models import CatalogueEntry, Confidence
from racewatch.models.project_models import Atom
from racewatch.models.race_models import AccessPoint

CHECKER_ID = "queue"

CATALOGUE: tuple[CatalogueEntry, ...] = (
    CatalogueEntry(r"\bp-queue\b|\bnew\s+PQueue\s*\(", "p-queue"),
    CatalogueEntry(r"\bbullmq?\b|\bnew\s+(?:Queue|Worker)\s*\(\s*['\"]", "Bull queue"),
    CatalogueEntry(r"\basync\.(?:queue|cargo|eachLimit|mapLimit)\s*\(|\bfastq\b", "async work queue"),
    CatalogueEntry(r"\bp-limit\b|\bpLimit\s*\(", "p-limit"),
    CatalogueEntry(r"\bBottleneck\b", "Bottleneck rate limiter"),
    CatalogueEntry(r"\bpiscina\b|\bworker_threads\b|\bworkerpool\b", "worker pool"),
    CatalogueEntry(r"\bamqplib\b|\.sendToQueue\s*\(|\bchannel\.consume\s*\(", "AMQP broker"),
    CatalogueEntry(r"\bkafkajs\b|\bproducer\.send\s*\(", "Kafka"),
    CatalogueEntry(r"\bSendMessageCommand\b|\bsqs\.sendMessage\s*\(", "SQS"),
    CatalogueEntry(r"\basyncio\.Queue\s*\(|\bqueue\.Queue\s*\(", "Python queue"),
    CatalogueEntry(r"\b\w*queue\.(?:add|push|enqueue)\s*\(", "queue enqueue", Confidence.MEDIUM),
)


def detect(atom: Atom | None) -> CatalogueEntry | None:
    """First queue signature found in the atom's source, else None."""
    if atom is None:
        return None
    return match_catalogue(atom.code, CATALOGUE)


def same_queue(
    access1: AccessPoint,
    atom1: Atom | None,
    access2: AccessPoint,
    atom2: Atom | None,
) -> bool:
    """Same file, or the same extracted queue name on both sides."""
    if access1.file == access2.file:
        return True
    name1 = extract_queue_name(atom1.code if atom1 else None)
    return name1 is not None and name1 == extract_queue_name(atom2.code if atom2 else None)
