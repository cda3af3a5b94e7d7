from __future__ import annotations

from dataclasses import dataclass, field

from . import config
from .errors import HostError
from .host import LayoutHost
from .model import Bounds, Margins, PageSide, SurfacePage
from .outcome import ItemOutcome
from .run_log import RunLogState, warn

_STAGE = "overflow"


@dataclass
class ThreadFailure:
    previous_id: int
    container_id: int
    reason: str


@dataclass
class OverflowResult:
    surfaces_created: int = 0
    containers_threaded: int = 0
    tail_id: int | None = None
    hit_limit: bool = False
    aborted: bool = False
    failures: list[ThreadFailure] = field(default_factory=list)

    def to_dict(self) -> dict[str, int]:
        return {
            "surfaces_created": self.surfaces_created,
            "containers_threaded": self.containers_threaded,
            "hit_limit": int(self.hit_limit),
            "aborted": int(self.aborted),
            "thread_failures": len(self.failures),
        }


def fallback_bounds(page: SurfacePage, margin: Margins, facing_pages: bool) -> Bounds:
    if facing_pages and page.side == PageSide.LEFT:
        left = margin.outside
        right = page.width - margin.inside
    elif facing_pages and page.side == PageSide.RIGHT:
        left = margin.inside
        right = page.width - margin.outside
    else:
        left = margin.outside
        right = page.width - margin.inside
    return Bounds(
        top=margin.top,
        left=left,
        bottom=page.height - margin.bottom,
        right=right,
    )


class OverflowResolver:
    def __init__(
        self,
        host: LayoutHost,
        max_surfaces: int = config.DEFAULT_MAX_SURFACES,
        fallback_margin: Margins | None = None,
        log_state: RunLogState | None = None,
    ) -> None:
        if max_surfaces < 0:
            raise ValueError(f"max_surfaces must be >= 0, got {max_surfaces}")
        self.host = host
        self.max_surfaces = max_surfaces
        self.fallback_margin = fallback_margin or Margins(**config.DEFAULT_FALLBACK_MARGIN)
        self.log_state = log_state

    def resolve(self, chain_head: int, template_id: str) -> OverflowResult:
        result = OverflowResult()
        tail = self.host.chain.tail(chain_head)
        while self.host.overflows(tail):
            if result.surfaces_created >= self.max_surfaces:
                result.hit_limit = True
                warn(
                    self.log_state,
                    stage=_STAGE,
                    reason=f"surface limit reached ({self.max_surfaces}) while text still overflows",
                    container_id=tail,
                )
                break
            try:
                surface = self.host.add_surface(template_id)
            except HostError as exc:
                result.aborted = True
                warn(self.log_state, stage=_STAGE, reason=f"surface creation failed ({exc})")
                break
            result.surfaces_created += 1
            if not surface.pages:
                result.aborted = True
                warn(
                    self.log_state,
                    stage=_STAGE,
                    reason=f"template {template_id!r} produced a surface without pages",
                )
                break
            usable = 0
            for page in surface.pages:
                container_id = self.obtain_container(page)
                if container_id is None:
                    continue
                usable += 1
                outcome = self._thread(tail, container_id)
                if not outcome.ok:
                    result.failures.append(
                        ThreadFailure(
                            previous_id=tail,
                            container_id=container_id,
                            reason=outcome.reason or "unknown",
                        )
                    )
                    warn(
                        self.log_state,
                        stage=_STAGE,
                        reason=f"threading failed ({outcome.reason})",
                        container_id=container_id,
                    )
                    result.tail_id = tail
                    return result
                result.containers_threaded += 1
                tail = container_id
                if not self.host.overflows(tail):
                    break
            if usable == 0:
                result.aborted = True
                warn(
                    self.log_state,
                    stage=_STAGE,
                    reason=f"surface {surface.id} yielded no usable container",
                )
                break
            tail = self.host.chain.tail(tail)
        result.tail_id = tail
        return result

    def obtain_container(self, page: SurfacePage) -> int | None:
        try:
            overridden = self.host.override_template_frame(page)
        except HostError as exc:
            overridden = None
            warn(self.log_state, stage=_STAGE, reason=f"template frame override failed ({exc})")
        if overridden is not None:
            return overridden
        largest = self._largest_untouched(page)
        if largest is not None:
            return largest
        bounds = fallback_bounds(page, self.fallback_margin, self.host.facing_pages)
        try:
            return self.host.create_container(page, bounds)
        except HostError as exc:
            warn(self.log_state, stage=_STAGE, reason=f"container creation failed ({exc})")
            return None

    def _largest_untouched(self, page: SurfacePage) -> int | None:
        best_id: int | None = None
        best_area = 0.0
        for container_id in page.container_ids:
            container = self.host.chain.get(container_id)
            if container.threaded or container.story_id is not None or container.bounds is None:
                continue
            area = container.bounds.area
            if area > best_area:
                best_area = area
                best_id = container.id
        return best_id

    def _thread(self, previous_id: int, container_id: int) -> ItemOutcome:
        try:
            self.host.thread(previous_id, container_id)
        except HostError as exc:
            return ItemOutcome.failed(str(exc), index=container_id)
        return ItemOutcome.applied(index=container_id)
