"""Simulated spec execution, run by each worker process."""

import os
import random
import time
from collections import Counter
from typing import Callable, Optional

from ..core.types import PROCESS_INDEX_ENV
from ..utils.output import end_unit, write_stdout

OUTCOMES = ("passed", "passed", "passed", "passed", "pending", "failed")


def run(
    duration: int,
    rng: Optional[random.Random] = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Execute simulated examples for ``duration`` seconds.

    Each example is printed in two writes, with the outcome arriving after
    the simulated work; the flush delimiter follows the outcome so the
    supervising parent shows the example as one unit.

    Returns:
        1 if any example failed, else 0
    """
    index = os.environ.get(PROCESS_INDEX_ENV, "0")
    rng = rng or random.Random()
    counts: Counter = Counter()
    deadline = clock() + duration
    examples = 0

    while clock() < deadline:
        examples += 1
        write_stdout(f"[worker {index}] example {examples} ... ")
        sleep(rng.uniform(0.05, 0.3))
        outcome = rng.choice(OUTCOMES)
        counts[outcome] += 1
        write_stdout(f"{outcome}\n")
        end_unit()

    write_stdout(
        f"[worker {index}] {examples} examples, "
        f"{counts['failed']} failures, {counts['pending']} pending\n"
    )
    end_unit()
    return 1 if counts["failed"] else 0
