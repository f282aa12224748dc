"""
Core Module - Constants.

============================================================
RESPONSIBILITY
============================================================
Defines the closed vocabularies and limits of the module runner.

- Module types, scopes and run statuses
- The run status state machine
- Queue names and job names
- Listing limits and column sizes
- Known module keys

============================================================
"""

from enum import Enum
from typing import Dict, FrozenSet


# ============================================================
# MODULE VOCABULARY
# ============================================================

class ModuleType(str, Enum):
    """Kind of processing unit."""

    CONNECTOR = "CONNECTOR"
    """Brings raw data in."""

    ENRICHER = "ENRICHER"
    """Derives structured facts."""

    COMPOSER = "COMPOSER"
    """Synthesizes higher-level signals."""


class ModuleScope(str, Enum):
    """What a module runs against."""

    PERSON_LEVEL = "PERSON_LEVEL"
    """A single person within a project."""

    PROJECT_LEVEL = "PROJECT_LEVEL"
    """The project as a whole."""


# ============================================================
# RUN STATE MACHINE
# ============================================================

class ModuleRunStatus(str, Enum):
    """
    Status of a module run.

    QUEUED --> RUNNING --> COMPLETED
                       \\-> FAILED
    """

    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        """Check if no transition leaves this status."""
        return self in (ModuleRunStatus.COMPLETED, ModuleRunStatus.FAILED)


RUN_STATUS_TRANSITIONS: Dict[ModuleRunStatus, FrozenSet[ModuleRunStatus]] = {
    ModuleRunStatus.QUEUED: frozenset({ModuleRunStatus.RUNNING}),
    ModuleRunStatus.RUNNING: frozenset({
        ModuleRunStatus.COMPLETED,
        ModuleRunStatus.FAILED,
    }),
    ModuleRunStatus.COMPLETED: frozenset(),
    ModuleRunStatus.FAILED: frozenset(),
}

INITIAL_RUN_STATUS = ModuleRunStatus.QUEUED


def allowed_sources(target: ModuleRunStatus) -> FrozenSet[ModuleRunStatus]:
    """Statuses from which `target` may be reached."""
    return frozenset(
        source for source, targets in RUN_STATUS_TRANSITIONS.items()
        if target in targets
    )


# ============================================================
# JOB QUEUE
# ============================================================

class JobStatus(str, Enum):
    """Status of a durable queue row."""

    PENDING = "PENDING"
    CLAIMED = "CLAIMED"
    DONE = "DONE"
    DEAD = "DEAD"


MODULE_RUNS_QUEUE = "module-runs"
EXECUTE_MODULE_RUN_JOB = "execute-module-run"
DEFAULT_JOB_MAX_ATTEMPTS = 3
DEFAULT_CLAIM_TIMEOUT_SECONDS = 900


# ============================================================
# LIMITS
# ============================================================

DEFAULT_RUN_LIST_LIMIT = 20
MAX_RUN_LIST_LIMIT = 100

MODULE_KEY_MAX_LENGTH = 128
MODULE_VERSION_MAX_LENGTH = 32

DEFAULT_ORPHAN_THRESHOLD_SECONDS = 900


# ============================================================
# KNOWN MODULE KEYS
# ============================================================

class ModuleKeys:
    """Module keys known to the seeded catalog."""

    # Connectors
    LINKEDIN_PROFILE_CONNECTOR = "linkedin-profile-connector"
    LINKEDIN_POSTS_CONNECTOR = "linkedin-posts-connector"
    MANUAL_DOCUMENT_CONNECTOR = "manual-document-connector"
    PROSPECT_SEARCH_CONNECTOR = "prospect-search-connector"

    # Enrichers
    CONTENT_CHUNKER = "content-chunker"
    LINKEDIN_POSTS_CHUNK_EVIDENCE_EXTRACTOR = "linkedin-posts-chunk-evidence-extractor"
    LINKEDIN_POSTS_NORMALIZER = "linkedin-posts-normalizer"
    PERSONALITY_ACTIVE_TIMES_REDUCER = "personality-active-times-reducer"
    LINKEDIN_DIGITAL_IDENTITY_ENRICHER = "linkedin-digital-identity-enricher"
    LINKEDIN_CORE_IDENTITY_ENRICHER = "linkedin-core-identity-enricher"
    CORE_IDENTITY_ENRICHER = "core-identity-enricher"

    # Composers
    DECISION_MAKER_BRAND_COMPOSER = "decision-maker-brand-composer"
    REVENUE_SIGNAL_COMPOSER = "revenue-signal-composer"
    LINKEDIN_ACTIVITY_COMPOSER = "linkedin-activity-composer"
    COMPETITOR_MENTIONS_COMPOSER = "competitor-mentions-composer"
    HIRING_SIGNALS_COMPOSER = "hiring-signals-composer"
    TOPIC_THEMES_COMPOSER = "topic-themes-composer"
    TONE_SIGNALS_COMPOSER = "tone-signals-composer"
    COLLEAGUE_NETWORK_COMPOSER = "colleague-network-composer"
    EXTERNAL_SOCIALS_COMPOSER = "external-socials-composer"
    EVENT_ATTENDANCE_COMPOSER = "event-attendance-composer"
    LOW_QUALITY_ENGAGEMENT_COMPOSER = "low-quality-engagement-composer"
    DESIGN_HELP_SIGNALS_COMPOSER = "design-help-signals-composer"
    FINAL_SUMMARY_COMPOSER = "final-summary-composer"
    LAYER_1_COMPOSER = "layer-1-composer"

    # Testing
    NOOP_MODULE = "noop-module"
