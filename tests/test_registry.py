import itertools
import unittest
from dibreport.core.assembler import assemble
from dibreport.core.models import ImageRecord
from dibreport.core.registry import ReportRegistry
from dibreport.plugins.parsers.goss import GossParser
from dibreport.plugins.parsers.trivy import TrivyParser
from samples import goss_document, trivy_document


class TestReportRegistry(unittest.TestCase):
    def setUp(self):
        self.registry = ReportRegistry()
        self.snapshots = []
        self.registry.subscribe(self.snapshots.append)

    def test_subscribe_receives_current_snapshot(self):
        self.assertEqual(len(self.snapshots), 1)
        self.assertEqual(self.snapshots[0].image_names, ())
        self.assertEqual(self.snapshots[0].images, {})

    def test_every_mutation_publishes(self):
        self.registry.set_image_names(["web", "db"])
        self.registry.upsert_image(assemble("web", build_log="OK"))
        self.assertEqual(len(self.snapshots), 3)
        self.assertEqual(self.snapshots[1].image_names, ("web", "db"))
        self.assertEqual(self.snapshots[1].images, {})
        self.assertEqual(self.snapshots[2].images["web"].build_log, "OK")

    def test_snapshots_are_not_affected_by_later_mutations(self):
        self.registry.set_image_names(["web"])
        self.registry.upsert_image(assemble("web", build_log="OK"))
        before = self.snapshots[-1]
        self.registry.upsert_image(assemble("web", build_log="rebuilt"))
        self.assertEqual(before.images["web"].build_log, "OK")
        self.assertEqual(self.snapshots[-1].images["web"].build_log, "rebuilt")

    def test_unsubscribe(self):
        unsubscribe = self.registry.subscribe(self.snapshots.append)
        self.registry.set_image_names(["web"])
        unsubscribe()
        self.registry.set_image_names(["db"])
        # two initial deliveries, two for the first mutation, one after unsubscribing
        self.assertEqual(len(self.snapshots), 1 + 1 + 2 + 1)

    def test_failing_subscriber_does_not_block_others(self):
        def broken(snapshot):
            raise RuntimeError("render failed")

        registry = ReportRegistry()
        received = []
        with self.assertLogs("dibreport.core.registry", level="ERROR"):
            registry.subscribe(broken)
            registry.subscribe(received.append)
            registry.set_image_names(["web"])
        self.assertEqual(received[-1].image_names, ("web",))
        self.assertEqual(registry.image_names, ["web"])

    def test_mutation_from_subscriber_is_applied_after_delivery(self):
        registry = ReportRegistry()
        seen = []

        def follow_up(snapshot):
            seen.append(snapshot)
            if "web" in snapshot.images and "db" not in snapshot.images:
                registry.upsert_image(assemble("db", build_log="queued"))

        registry.set_image_names(["web", "db"])
        registry.subscribe(follow_up)
        registry.upsert_image(assemble("web", build_log="OK"))

        self.assertEqual([sorted(s.images) for s in seen], [[], ["web"], ["db", "web"]])
        self.assertEqual(registry.get_image("db").build_log, "queued")

    def test_all_images_follows_discovery_order(self):
        self.registry.set_image_names(["c", "a", "b"])
        self.registry.upsert_image(assemble("b", build_log="b"))
        self.registry.upsert_image(assemble("c", build_log="c"))
        self.assertEqual([r.name for r in self.registry.all_images()], ["c", "b"])
        self.registry.upsert_image(assemble("a", build_log="a"))
        self.assertEqual([r.name for r in self.registry.all_images()], ["c", "a", "b"])

    def test_duplicate_names_collapse(self):
        self.registry.set_image_names(["a", "b", "a"])
        self.assertEqual(self.registry.image_names, ["a", "b"])

    def test_get_unknown_image(self):
        self.registry.set_image_names(["a"])
        self.assertIsNone(self.registry.get_image("a"))
        self.assertIsNone(self.registry.get_image("nope"))

    def test_upsert_is_commutative_across_names(self):
        upserts = [
            assemble("a", build_log="a"),
            assemble("b", build_log="b"),
            ImageRecord(name="c"),
        ]
        states = set()
        for order in itertools.permutations(upserts):
            registry = ReportRegistry()
            registry.set_image_names(["a", "b", "c"])
            for record in order:
                registry.upsert_image(record)
            states.add(repr(registry.snapshot().to_dict()))
        self.assertEqual(len(states), 1)

    def test_repeated_upsert_is_idempotent(self):
        self.registry.set_image_names(["a"])
        record = assemble("a", build_log="a")
        self.registry.upsert_image(record)
        first = self.registry.snapshot()
        self.registry.upsert_image(record)
        self.assertEqual(self.registry.snapshot(), first)

    def test_last_write_wins_per_field(self):
        self.registry.set_image_names(["a"])
        self.registry.upsert_image(assemble("a", build_log="partial"))
        self.registry.upsert_image(assemble("a", build_log="complete"))
        self.assertEqual(self.registry.get_image("a").build_log, "complete")

    def test_run_switch_drops_records_of_shared_names(self):
        self.registry.set_image_names(["a", "b"], run="run-a")
        self.registry.upsert_image(assemble("a", build_log="a"), run="run-a")
        self.registry.upsert_image(assemble("b", build_log="b"), run="run-a")
        self.registry.set_image_names(["b", "c"], run="run-b")
        self.assertEqual(self.registry.run, "run-b")
        self.assertIsNone(self.registry.get_image("a"))
        self.assertIsNone(self.registry.get_image("b"))
        self.assertEqual(self.registry.all_images(), [])

    def test_late_upsert_from_previous_run_is_ignored_for_shared_name(self):
        self.registry.set_image_names(["web"], run="run-a")
        self.registry.set_image_names(["web"], run="run-b")
        self.registry.upsert_image(assemble("web", build_log="run b log"), run="run-b")
        published = len(self.snapshots)

        self.registry.upsert_image(assemble("web", build_log="late run a log"), run="run-a")
        self.assertEqual(self.registry.get_image("web").build_log, "run b log")
        self.assertEqual(len(self.snapshots), published)

    def test_name_discovered_after_manifest_is_appended(self):
        self.registry.set_image_names(["a", "b"])
        self.registry.upsert_image(assemble("c", build_log="late"))
        self.assertEqual(self.registry.image_names, ["a", "b", "c"])
        self.assertEqual([r.name for r in self.registry.all_images()], ["c"])
        self.assertEqual(self.registry.get_image("c").build_log, "late")

    def test_late_result_from_previous_run_is_ignored(self):
        self.registry.set_image_names(["old", "shared"])
        self.registry.set_image_names(["shared", "new"])
        published = len(self.snapshots)

        self.registry.upsert_image(assemble("old", build_log="stale"))
        self.assertIsNone(self.registry.get_image("old"))
        self.assertNotIn("old", self.registry.image_names)
        self.assertEqual(len(self.snapshots), published)

        self.registry.upsert_image(assemble("shared", build_log="fresh"))
        self.assertEqual(self.registry.get_image("shared").build_log, "fresh")

    def test_retired_name_can_come_back(self):
        self.registry.set_image_names(["a"])
        self.registry.set_image_names(["b"])
        self.registry.set_image_names(["a", "b"])
        self.registry.upsert_image(assemble("a", build_log="a"))
        self.assertEqual(self.registry.get_image("a").build_log, "a")

    def test_images_keys_subset_of_names(self):
        self.registry.set_image_names(["a", "b"])
        self.registry.upsert_image(assemble("a", build_log="a"))
        for snapshot in self.snapshots:
            self.assertTrue(set(snapshot.images) <= set(snapshot.image_names))

    def test_progressive_loading_scenario(self):
        test_result = GossParser().parse({
            "name": "goss", "tests": "5", "errors": "0", "failures": "0", "skipped": "0",
            "testcases": [{"name": f"t{i}"} for i in range(5)],
        })
        scan_result = TrivyParser().parse(trivy_document())

        self.registry.set_image_names(["web", "db"])
        self.registry.upsert_image(ImageRecord(name="web", build_log="OK"))
        self.registry.upsert_image(ImageRecord(name="web", test_result=test_result))
        self.registry.upsert_image(ImageRecord(name="db", scan_result=scan_result))

        web, db = self.registry.all_images()
        self.assertEqual(web.name, "web")
        self.assertEqual(web.build_log, "OK")
        self.assertEqual(web.test_result.test_count, 5)
        self.assertEqual(web.test_result.failure_count, 0)
        self.assertTrue(web.test_result.is_consistent)
        self.assertIsNone(web.scan_result)

        self.assertEqual(db.name, "db")
        self.assertIsNone(db.build_log)
        self.assertIsNone(db.test_result)
        self.assertEqual(db.scan_result.severity_counts()["CRITICAL"], 1)

    def test_snapshot_to_dict(self):
        self.registry.set_image_names(["web", "db"])
        self.registry.upsert_image(assemble("web", test_result=GossParser().parse(goss_document())))
        data = self.registry.snapshot().to_dict()
        self.assertEqual(data["imageNames"], ["web", "db"])
        self.assertEqual(list(data["images"]), ["web"])
        self.assertEqual(data["images"]["web"]["testResult"]["tests"], 2)


if __name__ == '__main__':
    unittest.main()
