import asyncio
import functools
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

from ..api.types import Const
from ..exceptions import HueStateError

if TYPE_CHECKING:
    from .resources import HueLight

"""
===================================================================================
Write coalescing: host commands arriving within a short window for the same
resource are merged into a single PUT.

  request_fields()  ->  buffer (last write wins per field)
                    ->  wait_time_update
                    ->  one PUT of the whole buffer
                    ->  confirmed fields copied into the observed state
===================================================================================
"""


@dataclass
class DesiredState:
    """Not-yet-sent writes for one resource"""
    fields: dict[str, Any]
    future: asyncio.Future
    dispatched: bool = False


class WriteCoalescer:
    def __init__(self,
                 wait_time_update: float = Const.WAIT_TIME_UPDATE,
                 default_transition_time: float = Const.DEFAULT_TRANSITION_TIME,
                 logger: Optional[logging.Logger] = None):
        self.wait_time_update = wait_time_update
        self.default_transition_time = default_transition_time
        self.transition_time = default_transition_time
        self.logger = logger or logging.getLogger(__name__)

    # ============================
    # Global transition time
    # ============================

    def set_transition_time(self, seconds: float) -> None:
        """Use this fade duration for the next flush on any resource"""
        self.logger.info(f"transition time changed from {self.transition_time}s to {seconds}s")
        self.transition_time = seconds

    def reset_transition_time(self) -> None:
        self.transition_time = self.default_transition_time

    # ============================
    # Buffering
    # ============================

    def request_write(self, resource: "HueLight", field: str, value: Any) -> asyncio.Future:
        return self.request_fields(resource, {field: value})

    def request_fields(self, resource: "HueLight", fields: dict[str, Any]) -> asyncio.Future:
        """
        Merge fields into the resource's pending buffer, creating it if needed.

        Returns a future shared by every request merged into the same buffer. It resolves
        to True once the PUT succeeds, or raises the error that failed it.
        """
        if resource.closed:
            raise HueStateError(f"{resource}: resource is closed")
        pending = resource._desired
        if pending is not None:
            pending.fields.update(fields)
            self.logger.debug(f"{resource.name}: merged {fields} into pending write")
            return pending.future

        pending = DesiredState(fields=dict(fields), future=asyncio.get_running_loop().create_future())
        resource.begin_write()
        if self.wait_time_update > 0:
            resource._desired = pending
        else:
            self._dispatch(resource, pending)
        task = resource.create_task(self._flush(resource, pending))
        task.add_done_callback(functools.partial(self._abandon, pending))
        return pending.future

    @staticmethod
    def _abandon(pending: DesiredState, task: asyncio.Task) -> None:
        # A flush cancelled before it started never reaches its own cleanup
        if not pending.future.done():
            pending.future.cancel()

    def _dispatch(self, resource: "HueLight", pending: DesiredState) -> None:
        # Detaches the buffer; later requests start a new one
        if resource._desired is pending:
            resource._desired = None
        pending.dispatched = True
        if self.transition_time != self.default_transition_time and "transitiontime" not in pending.fields:
            pending.fields["transitiontime"] = round(self.transition_time * 10)
            self.reset_transition_time()

    async def _flush(self, resource: "HueLight", pending: DesiredState) -> None:
        confirmed = False
        try:
            if not pending.dispatched:
                await asyncio.sleep(self.wait_time_update)
                self._dispatch(resource, pending)
            body = dict(pending.fields)
            async with resource._write_lock:
                await resource.put_state(body)
            resource.apply_write(body)
            confirmed = True
            if not pending.future.done():
                pending.future.set_result(True)
        except Exception as e:
            # Surfaced to the caller through the shared future
            self.logger.error(f"{resource.name}: write {pending.fields} failed: {e}")
            if not pending.future.done():
                pending.future.set_exception(e)
        except asyncio.CancelledError:
            if resource._desired is pending:
                resource._desired = None
            pending.future.cancel()
            raise
        finally:
            resource.end_write()
            resource.write_finished()
            if confirmed:
                resource.refresh()
