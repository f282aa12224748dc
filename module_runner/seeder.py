"""
Module Runner - Bootstrap Seeder.

============================================================
RESPONSIBILITY
============================================================
Idempotently populates the module registry with the known
module catalog at process start.

- Insert a catalog entry only if (module_key, version) is absent
- Never modify an existing row (a disabled module stays disabled)
- Abort the whole pass on the first insert failure

============================================================
USAGE
============================================================
    seeder = BootstrapSeeder(database, clock)
    report = seeder.seed_all()

Gated by AUTO_SEED (see RunnerConfig.auto_seed).

============================================================
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .models import ModuleRegistration
from .registry import ModuleRegistry
from core.clock import ClockProtocol
from core.constants import ModuleKeys, ModuleScope, ModuleType
from core.exceptions import SeedingError
from storage.database import Database


logger = logging.getLogger(__name__)


def _seed(
    module_key: str,
    module_type: ModuleType,
    scope: ModuleScope = ModuleScope.PERSON_LEVEL,
) -> ModuleRegistration:
    return ModuleRegistration(
        module_key=module_key,
        module_type=module_type,
        scope=scope,
        version="v1",
        config_schema=None,
        is_enabled=True,
    )


# ============================================================
# DEFAULT CATALOG
# ============================================================

DEFAULT_MODULE_CATALOG: List[ModuleRegistration] = [
    # Connectors
    _seed(ModuleKeys.LINKEDIN_PROFILE_CONNECTOR, ModuleType.CONNECTOR),
    _seed(ModuleKeys.MANUAL_DOCUMENT_CONNECTOR, ModuleType.CONNECTOR),
    _seed(ModuleKeys.PROSPECT_SEARCH_CONNECTOR, ModuleType.CONNECTOR, ModuleScope.PROJECT_LEVEL),

    # Enrichers
    _seed(ModuleKeys.CONTENT_CHUNKER, ModuleType.ENRICHER),
    _seed(ModuleKeys.LINKEDIN_POSTS_CHUNK_EVIDENCE_EXTRACTOR, ModuleType.ENRICHER),
    _seed(ModuleKeys.LINKEDIN_POSTS_NORMALIZER, ModuleType.ENRICHER),
    _seed(ModuleKeys.PERSONALITY_ACTIVE_TIMES_REDUCER, ModuleType.ENRICHER),
    _seed(ModuleKeys.LINKEDIN_DIGITAL_IDENTITY_ENRICHER, ModuleType.ENRICHER),
    _seed(ModuleKeys.LINKEDIN_CORE_IDENTITY_ENRICHER, ModuleType.ENRICHER),
    _seed(ModuleKeys.CORE_IDENTITY_ENRICHER, ModuleType.ENRICHER),

    # Composers
    _seed(ModuleKeys.DECISION_MAKER_BRAND_COMPOSER, ModuleType.COMPOSER),
    _seed(ModuleKeys.REVENUE_SIGNAL_COMPOSER, ModuleType.COMPOSER),
    _seed(ModuleKeys.LINKEDIN_ACTIVITY_COMPOSER, ModuleType.COMPOSER),
    _seed(ModuleKeys.COMPETITOR_MENTIONS_COMPOSER, ModuleType.COMPOSER),
    _seed(ModuleKeys.HIRING_SIGNALS_COMPOSER, ModuleType.COMPOSER),
    _seed(ModuleKeys.TOPIC_THEMES_COMPOSER, ModuleType.COMPOSER),
    _seed(ModuleKeys.TONE_SIGNALS_COMPOSER, ModuleType.COMPOSER),
    _seed(ModuleKeys.COLLEAGUE_NETWORK_COMPOSER, ModuleType.COMPOSER),
    _seed(ModuleKeys.EXTERNAL_SOCIALS_COMPOSER, ModuleType.COMPOSER),
    _seed(ModuleKeys.EVENT_ATTENDANCE_COMPOSER, ModuleType.COMPOSER),
    _seed(ModuleKeys.LOW_QUALITY_ENGAGEMENT_COMPOSER, ModuleType.COMPOSER),
    _seed(ModuleKeys.DESIGN_HELP_SIGNALS_COMPOSER, ModuleType.COMPOSER),
    _seed(ModuleKeys.FINAL_SUMMARY_COMPOSER, ModuleType.COMPOSER),
    _seed(ModuleKeys.LAYER_1_COMPOSER, ModuleType.COMPOSER),

    # Testing
    _seed(ModuleKeys.NOOP_MODULE, ModuleType.COMPOSER),
]


# ============================================================
# SEEDER
# ============================================================

@dataclass
class SeedReport:
    seeded: int = 0
    skipped: int = 0


class BootstrapSeeder:
    """Check-then-insert seeding of the module registry."""

    def __init__(self, database: Database, clock: ClockProtocol):
        self._database = database
        self._clock = clock

    def seed_all(
        self,
        catalog: Optional[Iterable[ModuleRegistration]] = None,
    ) -> SeedReport:
        """
        Seed every catalog entry that is not registered yet.

        Raises:
            SeedingError: On the first entry that cannot be inserted.
                Nothing from the pass is committed.
        """
        entries = list(DEFAULT_MODULE_CATALOG if catalog is None else catalog)
        report = SeedReport()

        logger.info(f"Module seeding started [entries={len(entries)}]")

        current: Optional[ModuleRegistration] = None
        try:
            with self._database.session_scope() as session:
                registry = ModuleRegistry(session, self._clock)
                for current in entries:
                    if registry.find(current.module_key, current.version) is not None:
                        logger.debug(
                            f"Module already exists [module={current.module_key}@{current.version}]"
                        )
                        report.skipped += 1
                        continue

                    registry.register(current)
                    report.seeded += 1
        except Exception as e:
            key = current.module_key if current else "<none>"
            version = current.version if current else "<none>"
            logger.error(f"Module seeding failed [module={key}@{version}]: {e}")
            raise SeedingError(key, version, cause=e) from e

        logger.info(
            f"Module seeding completed [seeded={report.seeded}] [skipped={report.skipped}]"
        )
        return report
