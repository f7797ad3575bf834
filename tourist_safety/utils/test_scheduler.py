import os
from unittest.mock import patch

import pytest
from pymongo.errors import PyMongoError

from tourist_safety import config
from tourist_safety.utils import scheduler


def test_recompute_all_scores_visits_every_tracked_tourist(store):
    store.list_tracked_tourists.return_value = ["DT-1", "DT-2"]

    assert scheduler.recompute_all_scores(store) == (2, 0)
    assert store.upsert_safety_score.call_count == 2


def test_failing_tourist_does_not_stop_the_sweep(store):
    store.list_tracked_tourists.return_value = ["DT-1", "DT-2", "DT-3"]
    store.get_location_history.side_effect = [[], PyMongoError("timeout"), []]

    assert scheduler.recompute_all_scores(store) == (2, 1)


def test_start_scheduler_registers_interval_job(store):
    with patch.object(scheduler, "BackgroundScheduler") as scheduler_cls:
        instance = scheduler.start_scheduler(store, interval_minutes=5)

    assert instance is scheduler_cls.return_value
    args, kwargs = instance.add_job.call_args
    assert args == (scheduler.recompute_all_scores, "interval")
    assert kwargs["minutes"] == 5
    assert kwargs["kwargs"] == {"store": store}
    instance.start.assert_called_once()


@pytest.mark.skipif("ENABLE_SCHEDULER" in os.environ, reason="overridden by environment")
def test_scheduler_is_opt_in():
    assert config.ENABLE_SCHEDULER is False
