"""Bulk describe runs: fetch, convert, merge and persist object schemas."""
import logging
import time
from typing import Callable, Dict, List, Optional, Tuple

from exceptions import AuthenticationError, SalesforceAPIError
from models import DescribeResult, GlobalObject, ProgressState, RunSummary, SchemaDocument
from services.converter_service import ConverterService
from services.file_service import FileService
from services.progress_service import ProgressTracker
from services.salesforce_service import SalesforceService
from utils import is_unwanted_object, utc_now_iso

logger = logging.getLogger(__name__)

LogCallback = Callable[[str], None]
ContinueCallback = Callable[[], bool]


class DescribeService:
    """Service running describe passes over an org's object catalog."""

    def __init__(
        self,
        salesforce_service: SalesforceService,
        converter_service: Optional[ConverterService] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize the describe service.

        Args:
            salesforce_service: Connected (or connectable) Salesforce client
            converter_service: Describe result converter
            sleep: Pause function used for rate limiting
        """
        self.salesforce_service = salesforce_service
        self.converter_service = converter_service or ConverterService()
        self.sleep = sleep

    @staticmethod
    def _log(message: str, log_callback: Optional[LogCallback] = None, level: int = logging.INFO) -> None:
        logger.log(level, message)
        if log_callback:
            log_callback(message)

    def fetch_and_convert(
        self,
        objects: Optional[List[str]] = None,
        include_metadata: bool = True,
        batch_size: int = 10,
        rate_limit_pause: float = 1.0
    ) -> Dict[str, SchemaDocument]:
        """
        Fetch object schemas and convert them without persisting anything.

        Args:
            objects: Objects to fetch; the whole catalog when omitted
            include_metadata: Attach key prefix, flags, icons and relationships
            batch_size: Catalog positions between rate-limit pauses
            rate_limit_pause: Seconds to pause after every batch

        Returns:
            Converted documents keyed by object name
        """
        self.salesforce_service.connect()
        try:
            describes: List[DescribeResult] = []
            if objects:
                self._log(f"Fetching {len(objects)} specific objects...")
                for name, describe, error in self.salesforce_service.describe_objects(objects):
                    if error is not None:
                        self._log(f"Failed to describe {name}: {error}", level=logging.WARNING)
                        continue
                    describes.append(describe)
            else:
                catalog = self.salesforce_service.describe_global()
                self._log(f"Fetching all {len(catalog)} objects...")
                for i, obj in enumerate(catalog):
                    logger.info(f"Progress: {i + 1}/{len(catalog)} - {obj['name']}")
                    try:
                        describes.append(self.salesforce_service.describe_object(obj['name']))
                    except AuthenticationError:
                        raise
                    except SalesforceAPIError as e:
                        self._log(f"Failed to describe {obj['name']}: {e}", level=logging.WARNING)
                    if (i + 1) % batch_size == 0:
                        self.sleep(rate_limit_pause)

            self._log(f"Converting {len(describes)} objects...")
            return self.converter_service.convert_many(describes, include_metadata)
        finally:
            self.salesforce_service.disconnect()

    def _persist(
        self,
        describe: DescribeResult,
        file_service: FileService,
        include_metadata: bool,
        merge_with_docs: bool
    ) -> None:
        schema = self.converter_service.convert_object(describe, include_metadata)
        if merge_with_docs:
            file_service.save_merged(schema)
        else:
            file_service.save_schema(schema)

    def fetch_and_save(
        self,
        output_dir: str,
        objects: Optional[List[str]] = None,
        include_metadata: bool = True,
        merge_with_docs: bool = False,
        batch_size: int = 10,
        resume: bool = True,
        start_from_index: Optional[int] = None,
        skip_custom_objects: bool = False,
        checkpoint_every: int = 10,
        rate_limit_pause: float = 1.0,
        should_continue: Optional[ContinueCallback] = None,
        log_callback: Optional[LogCallback] = None
    ) -> RunSummary:
        """
        Fetch object schemas and save them to a store.

        Args:
            output_dir: Store root
            objects: Allow-list of objects; the whole catalog when omitted
            include_metadata: Attach key prefix, flags, icons and relationships
            merge_with_docs: Merge into objects/<L>/<Name>.json instead of writing raw schemas
            batch_size: Catalog positions between rate-limit pauses
            resume: Continue after the last checkpoint when one exists
            start_from_index: Manual start position, takes precedence over the checkpoint
            skip_custom_objects: Skip objects whose name contains '__'
            checkpoint_every: Saved objects between checkpoints
            rate_limit_pause: Seconds to pause after every batch
            should_continue: Polled before each object; returning False stops the pass
            log_callback: Receives every progress message

        Returns:
            Summary of the pass

        Raises:
            AuthenticationError: If the session cannot be established or is rejected
            InvalidConfigurationError: If no credentials are configured
        """
        file_service = FileService(output_dir)

        self._log("Connecting to Salesforce...", log_callback)
        self.salesforce_service.connect()
        try:
            if objects:
                return self._save_selected(objects, file_service, include_metadata, merge_with_docs, log_callback)

            self._log("Fetching all objects...", log_callback)
            if merge_with_docs:
                self._log("Merging with existing doc/objects structure - descriptions will be preserved", log_callback)
            catalog = self.salesforce_service.describe_global()
            return self._save_catalog(
                catalog,
                file_service,
                ProgressTracker(output_dir),
                include_metadata=include_metadata,
                merge_with_docs=merge_with_docs,
                batch_size=batch_size,
                resume=resume,
                start_from_index=start_from_index,
                skip_custom_objects=skip_custom_objects,
                checkpoint_every=checkpoint_every,
                rate_limit_pause=rate_limit_pause,
                should_continue=should_continue,
                log_callback=log_callback,
            )
        finally:
            self.salesforce_service.disconnect()

    def _save_selected(
        self,
        objects: List[str],
        file_service: FileService,
        include_metadata: bool,
        merge_with_docs: bool,
        log_callback: Optional[LogCallback]
    ) -> RunSummary:
        self._log(f"Fetching {len(objects)} specific objects...", log_callback)
        processed = failed = 0

        # Network calls run concurrently; each file is then read and written one at a time
        for name, describe, error in self.salesforce_service.describe_objects(objects):
            if error is not None:
                failed += 1
                self._log(f"Failed to describe {name}: {error}", log_callback, logging.WARNING)
                continue
            try:
                self._persist(describe, file_service, include_metadata, merge_with_docs)
                processed += 1
                self._log(f"Saved {name}", log_callback)
            except Exception as e:
                failed += 1
                self._log(f"Failed to save {name}: {e}", log_callback, logging.WARNING)

        self._log(f"Done! Saved {processed} of {len(objects)} objects", log_callback)
        return {
            'processed': processed,
            'skipped': 0,
            'failed': failed,
            'startIndex': 0,
            'totalObjects': len(objects),
            'completed': True,
        }

    def resolve_start_index(
        self,
        tracker: ProgressTracker,
        resume: bool,
        start_from_index: Optional[int],
        log_callback: Optional[LogCallback] = None
    ) -> Tuple[int, Optional[ProgressState]]:
        """
        Decide where a catalog pass starts.

        Returns:
            Tuple of (start index, checkpoint being resumed or None)
        """
        if start_from_index is not None:
            if start_from_index > 0:
                self._log(f"Starting from index {start_from_index} (manual override)", log_callback)
            return start_from_index, None

        if resume:
            progress = tracker.load()
            if progress:
                start_index = progress['lastProcessedIndex'] + 1
                self._log(
                    f"Found previous progress: last processed {progress['lastProcessedObject']} "
                    f"(index {progress['lastProcessedIndex']}), "
                    f"{progress['processedCount']}/{progress['totalObjects']} processed. "
                    f"Resuming from index {start_index}...",
                    log_callback
                )
                return start_index, progress

        return 0, None

    def _save_catalog(
        self,
        catalog: List[GlobalObject],
        file_service: FileService,
        tracker: ProgressTracker,
        include_metadata: bool,
        merge_with_docs: bool,
        batch_size: int,
        resume: bool,
        start_from_index: Optional[int],
        skip_custom_objects: bool,
        checkpoint_every: int,
        rate_limit_pause: float,
        should_continue: Optional[ContinueCallback],
        log_callback: Optional[LogCallback]
    ) -> RunSummary:
        total = len(catalog)
        start_index, progress = self.resolve_start_index(tracker, resume, start_from_index, log_callback)
        if start_index == 0:
            tracker.clear()

        started_at = progress['startedAt'] if progress else utc_now_iso()
        previously_processed = progress['processedCount'] if progress else 0
        processed = skipped = failed = 0
        stopped = False

        self._log(f"Starting from index {start_index} of {total} objects", log_callback)
        if skip_custom_objects:
            self._log("Skipping custom objects (__ in name)", log_callback)

        for i in range(start_index, total):
            if should_continue and not should_continue():
                self._log("Processing terminated by user.", log_callback)
                stopped = True
                break

            object_name = catalog[i]['name']

            if skip_custom_objects and '__' in object_name:
                skipped += 1
                logger.info(f"Progress: {i + 1}/{total} - {object_name} (skipped - custom)")
                continue
            if is_unwanted_object(object_name):
                skipped += 1
                logger.info(f"Progress: {i + 1}/{total} - {object_name} (skipped - unwanted suffix)")
                continue

            self._log(f"Progress: {i + 1}/{total} - {object_name}", log_callback)
            try:
                describe = self.salesforce_service.describe_object(object_name)
                self._persist(describe, file_service, include_metadata, merge_with_docs)
                processed += 1

                if processed % checkpoint_every == 0:
                    tracker.save({
                        'lastProcessedIndex': i,
                        'lastProcessedObject': object_name,
                        'totalObjects': total,
                        'startedAt': started_at,
                        'lastUpdatedAt': utc_now_iso(),
                        'processedCount': previously_processed + processed,
                    })
            except AuthenticationError:
                raise
            except SalesforceAPIError as e:
                failed += 1
                self._log(f"Failed to describe {object_name}: {e}", log_callback, logging.WARNING)
            except Exception as e:
                failed += 1
                self._log(f"Unexpected error processing {object_name}: {e}", log_callback, logging.WARNING)

            if (i + 1) % batch_size == 0:
                self.sleep(rate_limit_pause)

        if not stopped:
            tracker.clear()
        if skipped:
            self._log(f"Skipped {skipped} objects", log_callback)
        self._log(f"Done! Saved {processed} objects, {failed} failed", log_callback)

        return {
            'processed': processed,
            'skipped': skipped,
            'failed': failed,
            'startIndex': start_index,
            'totalObjects': total,
            'completed': not stopped,
        }
