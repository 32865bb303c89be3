"""
Program assembly: metadata + full episode list + one enclosure per episode.
Metadata and enclosures go through the shared cache; each call to
get_program runs in its own AuvioProgramPage session.
"""

import time
import logging
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from typing import Callable, List, Optional, Tuple

from auvio_podcast.config.settings import Settings
from auvio_podcast.errors import DeadlineExceededError
from auvio_podcast.providers.auvio import AuvioProgramPage, get_program_id
from auvio_podcast.schemas.auvio import Enclosure, Episode, Program
from auvio_podcast.utils.cache import CacheStore, SingleFlightMemoizer
from auvio_podcast.utils.credentials import get_auvio_credentials
from auvio_podcast.utils.deadline import Deadline

logger = logging.getLogger(__name__)

PROGRAM_DATA_PREFIX = "programData"
MEDIA_ENCLOSURE_PREFIX = "mediaEnclosure"


def _ttl(seconds: int) -> Optional[int]:
    # 0 or less keeps entries until evicted
    return seconds if seconds and seconds > 0 else None


class ProgramPipeline:
    """Builds complete Program records for program paths"""

    def __init__(
        self,
        store: CacheStore,
        settings: Optional[Settings] = None,
        credentials_loader: Callable[[], Tuple[str, str]] = get_auvio_credentials,
    ):
        self.store = store
        self.settings = settings or Settings()
        self.credentials_loader = credentials_loader
        self.memoizer = SingleFlightMemoizer(store)

    def open_page(self, program_path: str, deadline: Optional[Deadline] = None, year: Optional[int] = None) -> AuvioProgramPage:
        return AuvioProgramPage(
            program_path,
            settings=self.settings,
            deadline=deadline,
            credentials_loader=self.credentials_loader,
            year=year,
        )

    def get_program_data(self, page: AuvioProgramPage) -> Program:
        return self.memoizer.get_or_compute(
            PROGRAM_DATA_PREFIX,
            page.program_path,
            page.get_program_data,
            ttl=_ttl(self.settings.program_cache_ttl),
            deadline=page.deadline,
            dump=lambda program: program.model_dump(mode="json"),
            load=Program.model_validate,
        )

    def get_media_enclosure(self, episode: Episode, page: AuvioProgramPage) -> Enclosure:
        return self.memoizer.get_or_compute(
            MEDIA_ENCLOSURE_PREFIX,
            episode.assetId,
            lambda: page.get_media_enclosure(episode),
            ttl=_ttl(self.settings.enclosure_cache_ttl),
            deadline=page.deadline,
            dump=lambda enclosure: enclosure.model_dump(mode="json"),
            load=Enclosure.model_validate,
        )

    def get_program(self, program_path: str, year: Optional[int] = None) -> Program:
        """
        Assemble the program at program_path with every episode's enclosure.

        Fails as a whole: any stage error, or running past the pipeline
        deadline, raises and no partial Program is returned.
        """
        get_program_id(program_path)
        started = time.monotonic()
        deadline = Deadline(self.settings.pipeline_deadline)

        with self.open_page(program_path, deadline=deadline, year=year) as page:
            logger.info(f"fetching program data for {program_path}")
            program = self.get_program_data(page)
            # the page embeds the latest episode as a preview
            program.media = None
            logger.info(f"fetched program data for {program_path}")

            logger.info(f"fetching media list for {program_path}")
            episodes = page.get_media_list()
            logger.info(f"fetched media list for {program_path}: {len(episodes)} episodes")

            program.episodes = self.resolve_enclosures(page, episodes)

        logger.info(f"assembled {program_path} in {time.monotonic() - started:.2f}s")
        return program

    def resolve_enclosures(self, page: AuvioProgramPage, episodes: List[Episode]) -> List[Episode]:
        """Resolve enclosures on a bounded worker pool, keeping catalog order"""
        if not episodes:
            return []

        workers = min(self.settings.enclosure_workers, len(episodes))
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="enclosure")
        futures: List[Future] = []
        try:
            for episode in episodes:
                futures.append(executor.submit(self._resolve_one, episode, page))

            done, pending = wait(futures, timeout=page.deadline.remaining(), return_when=FIRST_EXCEPTION)
            for future in futures:
                if future in done and future.exception() is not None:
                    raise future.exception()
            if pending:
                raise DeadlineExceededError(
                    f"Enclosure resolution for {page.program_path} exceeded the {page.deadline.seconds}s deadline"
                )
        except BaseException:
            for future in futures:
                future.cancel()
            page.cancel()
            raise
        finally:
            # joins running workers; their request timeouts are capped by the deadline
            executor.shutdown(wait=True, cancel_futures=True)

        return [
            episode.model_copy(update={"enclosure": future.result()})
            for episode, future in zip(episodes, futures)
        ]

    def _resolve_one(self, episode: Episode, page: AuvioProgramPage) -> Enclosure:
        logger.info(f"fetching media enclosure for {episode.assetId}")
        enclosure = self.get_media_enclosure(episode, page)
        logger.info(f"fetched media enclosure for {episode.assetId}")
        return enclosure
