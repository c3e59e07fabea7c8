"""Unit tests for per-URL timing summaries."""

import math

import pytest

from facade_audit.config import AuditSettings
from facade_audit.models import MainThreadTask, NetworkRecord
from facade_audit.third_party_db import ThirdPartyDatabase
from facade_audit.timing import OTHER_URL, cpu_multiplier, get_attributable_url, get_summaries

YT_EMBED = "https://www.youtube.com/embed/abc"
YT_BASE = "https://www.youtube.com/s/player/base.js"
APP_JS = "https://www.example.com/app.js"


def _task(self_time, urls=(), start=0.0):
    return MainThreadTask(start_time=start, end_time=start + self_time, self_time=self_time,
                          attributable_urls=list(urls))


class TestCpuMultiplier:
    def test_simulate_uses_slowdown(self):
        settings = AuditSettings(throttling_method="simulate", cpu_slowdown_multiplier=4)
        assert cpu_multiplier(settings) == 4

    @pytest.mark.parametrize("method", ["devtools", "provided"])
    def test_other_methods_are_unscaled(self, method):
        settings = AuditSettings(throttling_method=method, cpu_slowdown_multiplier=4)
        assert cpu_multiplier(settings) == 1.0


class TestAttributableUrl:
    def test_last_script_url_wins(self):
        task = _task(10, [APP_JS, YT_BASE])
        assert get_attributable_url(task, {APP_JS, YT_BASE}) == YT_BASE

    def test_non_script_urls_are_skipped(self):
        task = _task(10, [APP_JS, YT_EMBED])
        assert get_attributable_url(task, {APP_JS}) == APP_JS

    def test_unattributable_task_goes_to_other(self):
        assert get_attributable_url(_task(10, ["https://x.test/y.js"]), {APP_JS}) == OTHER_URL
        assert get_attributable_url(_task(10), {APP_JS}) == OTHER_URL


class TestGetSummaries:
    """Test aggregation of network records and main-thread tasks."""

    def test_network_records_accumulate_per_url(self):
        records = [
            NetworkRecord(url=YT_BASE, resource_type="script", start_time=300, end_time=500, transfer_size=1000),
            NetworkRecord(url=YT_BASE, resource_type="script", start_time=200, end_time=600, transfer_size=500),
        ]
        summary = get_summaries(records, []).by_url[YT_BASE]

        assert summary.transfer_size == 1500
        assert summary.first_start_time == 200
        assert summary.first_end_time == 500
        assert summary.blocking_time == 0

    def test_blocking_time_is_time_over_threshold(self):
        records = [NetworkRecord(url=YT_BASE, resource_type="script", start_time=0, end_time=10)]
        tasks = [_task(120, [YT_BASE]), _task(40, [YT_BASE]), _task(50, [YT_BASE])]
        summary = get_summaries(records, tasks).by_url[YT_BASE]

        assert summary.main_thread_time == 210
        assert summary.blocking_time == 70

    def test_multiplier_scales_task_time(self):
        records = [NetworkRecord(url=YT_BASE, resource_type="script")]
        summary = get_summaries(records, [_task(30, [YT_BASE])], multiplier=4).by_url[YT_BASE]

        assert summary.main_thread_time == 120
        assert summary.blocking_time == 70

    def test_custom_threshold(self):
        records = [NetworkRecord(url=YT_BASE, resource_type="script")]
        summary = get_summaries(records, [_task(100, [YT_BASE])], blocking_threshold_ms=80).by_url[YT_BASE]
        assert summary.blocking_time == 20

    def test_unattributed_tasks_collect_under_other(self):
        summaries = get_summaries([], [_task(90)])
        other = summaries.by_url[OTHER_URL]

        assert other.blocking_time == 40
        assert other.transfer_size == 0
        assert math.isinf(other.first_start_time)

    def test_by_entity_totals(self):
        records = [
            NetworkRecord(url=YT_EMBED, resource_type="document", start_time=100, end_time=200, transfer_size=40000),
            NetworkRecord(url=YT_BASE, resource_type="script", start_time=250, end_time=400, transfer_size=300000),
            NetworkRecord(url="https://unknown.test/x.js", resource_type="script", transfer_size=5),
        ]
        tasks = [_task(150, [YT_BASE])]
        summaries = get_summaries(records, tasks, tp_db=ThirdPartyDatabase())

        youtube = summaries.by_entity["YouTube"]
        assert youtube.transfer_size == 340000
        assert youtube.blocking_time == 100
        assert youtube.first_start_time == 100
        assert youtube.first_end_time == 200
        assert set(summaries.by_entity) == {"YouTube"}

    def test_no_knowledge_base_means_no_entity_totals(self):
        records = [NetworkRecord(url=YT_EMBED, transfer_size=1)]
        assert get_summaries(records, []).by_entity == {}
