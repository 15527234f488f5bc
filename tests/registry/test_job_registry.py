import sys
import tempfile
import unittest
import uuid
from pathlib import Path

from jobrunner.core.errors import ValidationError
from jobrunner.registry.job_registry import (
    JobRegistry,
    find_loaded_object,
    import_object,
    lookup_class_attr,
    normalize_namespace,
    within_namespace,
)


class Cleanup:
    def run(self) -> None:
        pass


class TestNamespaceMatching(unittest.TestCase):
    def test_segment_boundaries(self) -> None:
        self.assertTrue(within_namespace("app.jobs.SendEmail", "app.jobs"))
        self.assertTrue(within_namespace("app.jobs.mail.Send", "app.jobs."))
        self.assertTrue(within_namespace("app.jobs", "app.jobs"))
        self.assertFalse(within_namespace("app.jobsevil.Hack", "app.jobs"))
        self.assertFalse(within_namespace("app.evil.Hack", "app.jobs"))
        self.assertFalse(within_namespace("app.jobs.X", ""))

    def test_legacy_separator_is_normalized(self) -> None:
        self.assertEqual(normalize_namespace("App\\Jobs\\"), "App.Jobs")
        self.assertTrue(within_namespace("App.Jobs.SendEmail", "App\\Jobs\\"))


class TestImportObject(unittest.TestCase):
    def test_dotted_and_colon_forms(self) -> None:
        self.assertIs(import_object("pathlib.Path"), Path)
        self.assertIs(import_object("pathlib:Path"), Path)
        self.assertIs(import_object("os.path.join"), __import__("os").path.join)

    def test_missing_raises_lookup_error(self) -> None:
        for spec in ("no_such_pkg_xyz.Thing", "pathlib.NoSuchThing", "pathlib:"):
            with self.subTest(spec=spec):
                with self.assertRaises(LookupError):
                    import_object(spec)


class TestFindLoadedObject(unittest.TestCase):
    def test_resolves_loaded_modules_only(self) -> None:
        self.assertIs(find_loaded_object("pathlib.Path"), Path)
        self.assertIs(find_loaded_object("pathlib:Path"), Path)
        sys.modules.pop("this", None)
        with self.assertRaises(LookupError):
            find_loaded_object("this.Hack")
        self.assertNotIn("this", sys.modules)

    def test_class_attrs_exclude_metaclass(self) -> None:
        self.assertIs(lookup_class_attr(Cleanup, "run"), vars(Cleanup)["run"])
        self.assertIsNotNone(lookup_class_attr(Cleanup, "__init__"))
        self.assertIsNone(lookup_class_attr(Cleanup, "mro"))


class TestJobRegistry(unittest.TestCase):
    def test_register_get_and_aliases(self) -> None:
        reg = JobRegistry()
        entry = reg.register("app.jobs:Cleanup", Cleanup, alias="cleanup")
        self.assertEqual(entry.type_id, "app.jobs.Cleanup")
        self.assertIs(reg.get("app.jobs.Cleanup"), entry)
        self.assertIs(reg.get("app.jobs:Cleanup"), entry)
        self.assertIs(reg.get("cleanup"), entry)
        self.assertIn("cleanup", reg)
        self.assertNotIn("app.jobs.Other", reg)
        self.assertIsInstance(entry.instantiate(), Cleanup)

    def test_duplicates_rejected(self) -> None:
        reg = JobRegistry()
        reg.register("app.jobs.Cleanup", Cleanup, alias="cleanup")
        with self.assertRaises(ValidationError) as ctx:
            reg.register("app.jobs.Cleanup", Cleanup)
        self.assertEqual(ctx.exception.code, "registry.duplicate")
        with self.assertRaises(ValidationError):
            reg.register("app.jobs.Other", Cleanup, alias="cleanup")

    def test_non_class_rejected(self) -> None:
        reg = JobRegistry()
        with self.assertRaises(ValidationError) as ctx:
            reg.register("app.jobs.fn", len)  # type: ignore[arg-type]
        self.assertEqual(ctx.exception.code, "registry.invalid")

    def test_list_jobs_sorted(self) -> None:
        reg = JobRegistry()
        reg.register("b.Job", Cleanup)
        reg.register("a.Job", Cleanup, methods=["run"])
        jobs = reg.list_jobs()
        self.assertEqual([j["type_id"] for j in jobs], ["a.Job", "b.Job"])
        self.assertEqual(jobs[0]["methods"], ["run"])
        self.assertIsNone(jobs[1]["methods"])

    def test_register_spec_and_configure(self) -> None:
        reg = JobRegistry()
        entry = reg.register_spec("notify", "jobrunner.jobs.notify:Notify", methods=["send"])
        self.assertEqual(entry.type_id, "jobrunner.jobs.notify.Notify")
        self.assertEqual(entry.methods, ("send",))
        self.assertIs(reg.get("notify"), reg.get("jobrunner.jobs.notify.Notify"))

        reg.register("app.jobs.Cleanup", Cleanup)
        updated = reg.configure("app.jobs.Cleanup", alias="cleanup", methods=["run"])
        self.assertEqual(updated.aliases, ("cleanup",))
        self.assertIs(reg.get("cleanup"), updated)

        with self.assertRaises(ValidationError):
            reg.register_spec("missing", "no_such_pkg_xyz:Thing")
        with self.assertRaises(ValidationError):
            reg.configure("app.jobs.Unknown", alias="x")

    def test_register_builtin_namespace(self) -> None:
        reg = JobRegistry()
        added = reg.register_namespace("jobrunner.jobs")
        ids = {e.type_id for e in added}
        self.assertIn("jobrunner.jobs.notify.Notify", ids)
        self.assertIn("jobrunner.jobs.files.TouchFile", ids)

    def test_unknown_namespace(self) -> None:
        reg = JobRegistry()
        with self.assertRaises(ValidationError) as ctx:
            reg.register_namespace("no_such_pkg_xyz.jobs")
        self.assertEqual(ctx.exception.code, "registry.namespace_not_found")

    def test_register_namespace_walks_package(self) -> None:
        pkg = f"samplejobs_{uuid.uuid4().hex[:8]}"
        with tempfile.TemporaryDirectory() as td:
            root = Path(td) / pkg
            (root / "mail").mkdir(parents=True)
            (root / "__init__.py").write_text("", encoding="utf-8")
            (root / "mail" / "__init__.py").write_text("", encoding="utf-8")
            (root / "mail" / "send.py").write_text(
                "\n".join(
                    [
                        "from pathlib import Path",
                        "",
                        "class SendEmail:",
                        "    def handle(self, to):",
                        "        return to",
                        "",
                        "class _Helper:",
                        "    pass",
                    ]
                )
                + "\n",
                encoding="utf-8",
            )
            (root / "report.py").write_text("class Nightly:\n    def run(self):\n        pass\n", encoding="utf-8")

            sys.path.insert(0, td)
            try:
                reg = JobRegistry()
                added = reg.register_namespace(pkg + ".")
                ids = sorted(e.type_id for e in added)
                self.assertEqual(ids, [f"{pkg}.mail.send.SendEmail", f"{pkg}.report.Nightly"])

                # Discovery is idempotent for already known classes.
                self.assertEqual(reg.register_namespace(pkg), [])
            finally:
                sys.path.remove(td)
                for name in [m for m in sys.modules if m == pkg or m.startswith(pkg + ".")]:
                    sys.modules.pop(name, None)

    def test_broken_job_module_is_reported(self) -> None:
        pkg = f"brokenjobs_{uuid.uuid4().hex[:8]}"
        with tempfile.TemporaryDirectory() as td:
            root = Path(td) / pkg
            root.mkdir()
            (root / "__init__.py").write_text("", encoding="utf-8")
            (root / "ok.py").write_text("class Fine:\n    def run(self):\n        pass\n", encoding="utf-8")
            (root / "bad.py").write_text("import no_such_dependency_xyz\n", encoding="utf-8")

            sys.path.insert(0, td)
            try:
                with self.assertRaises(ValidationError) as ctx:
                    JobRegistry().register_namespace(pkg)
                self.assertEqual(ctx.exception.code, "registry.module_import_failed")
                self.assertEqual(ctx.exception.data["module"], f"{pkg}.bad")
                self.assertEqual(ctx.exception.data["namespace"], pkg)
                self.assertIsInstance(ctx.exception.__cause__, ImportError)
            finally:
                sys.path.remove(td)
                for name in [m for m in sys.modules if m == pkg or m.startswith(pkg + ".")]:
                    sys.modules.pop(name, None)


if __name__ == "__main__":
    unittest.main()
