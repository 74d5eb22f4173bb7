import queue
from typing import Union
from beatlab.routing.messages import ScheduleBuffer, CancelOwner, SetParam, SwapImpulse

Event = Union[ScheduleBuffer, CancelOwner, SetParam, SwapImpulse]

class EventBus:
    """
    Control thread -> render thread message queue.
    post() never blocks; the render callback drains at block start.
    """
    def __init__(self, maxsize=4096) -> None:
        self.q = queue.Queue(maxsize=maxsize)
        self.dropped = 0

    def post(self, e: Event) -> bool:
        try:
            self.q.put_nowait(e)
        except queue.Full:
            self.dropped += 1
            return False
        return True

    def drain(self, max_events=4096):
        evs = []
        try:
            while len(evs) < max_events:
                evs.append(self.q.get_nowait())
        except queue.Empty:
            pass
        return evs

    def pending(self) -> int:
        return self.q.qsize()
