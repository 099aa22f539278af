"""
Generation Scheduler — renders scenes one at a time and drives batch runs.

Per scene: Idle -> Pending -> {Succeeded, Failed}; Failed -> Pending on retry.

generate_one() never retries on its own. Backoff for a single service call
lives in story_engine (retry.generate_with_retry); cooling down and retrying
a rate-limited scene is run_batch()'s job.
"""
import base64
import threading
import time
from collections import namedtuple

from prompt_compiler import compile_prompt
from reference_catalog import reference_images
from reference_resolver import get_referenced_ids
from retry import RATE_LIMIT_MESSAGE, is_rate_limit_error

GenerationOutcome = namedtuple("GenerationOutcome", ["success", "is_rate_limited"])

DEFAULT_COOLDOWN = 60
SUCCESS_DELAY = 2
FAILURE_DELAY = 1


def _default_renderer(prompt, references, style_mode):
    import story_engine
    return story_engine.generate_frame(prompt, references, style_mode)


class GenerationScheduler:
    """
    Args:
        workspace: Owner of scenes, catalog and generation results
        renderer: (prompt, references, style_mode) -> image bytes
        sleep: Injected for tests
    """

    def __init__(self, workspace, renderer=None, sleep=time.sleep,
                 cooldown=DEFAULT_COOLDOWN, success_delay=SUCCESS_DELAY, failure_delay=FAILURE_DELAY):
        self.workspace = workspace
        self.renderer = renderer or _default_renderer
        self.sleep = sleep
        self.cooldown = cooldown
        self.success_delay = success_delay
        self.failure_delay = failure_delay

        self._stop = threading.Event()
        self._running = threading.Lock()
        self.cooldown_seconds = 0
        self.progress = (0, 0)

    @property
    def is_running(self):
        return self._running.locked()

    @property
    def stop_requested(self):
        return self._stop.is_set()

    def stop(self):
        """Ask the running batch to exit at its next checkpoint."""
        self._stop.set()

    def clear_stop(self):
        """Forget an earlier stop request; call before starting a new batch."""
        self._stop.clear()

    # -------------------------------------------------------------------------
    # Single scene
    # -------------------------------------------------------------------------

    def generate_one(self, scene_id):
        """
        Render one scene and record the result on the workspace.

        Returns:
            GenerationOutcome(success, is_rate_limited)
        """
        key = self.workspace.scene_key(scene_id)
        if key is None:
            return GenerationOutcome(False, False)
        return self._generate(key)

    def _generate(self, key):
        # Results are written by scene key: the board may be edited while the
        # renderer runs, and the scene's positional id moves with it.
        with self.workspace._lock:
            scene = self.workspace.find_prompt_by_key(key)
            if scene is None:
                return GenerationOutcome(False, False)
            scene_id = scene["id"]
            content = scene["content"]
            self.workspace.update_scene_generation(key, pending=True, error=None)

        try:
            catalog = self.workspace.catalog()
            style_mode = self.workspace.style_mode
            ref_ids = get_referenced_ids(content, catalog)
            prompt = compile_prompt(content, ref_ids, catalog, style_mode)
            image = self.renderer(prompt, reference_images(catalog, ref_ids), style_mode)
        except Exception as e:
            rate_limited = is_rate_limit_error(e)
            message = RATE_LIMIT_MESSAGE if rate_limited else (str(e) or "Unknown error")
            print(f"[scheduler] Scene {scene_id} failed: {e}")
            self.workspace.update_scene_generation(key, pending=False, error=message)
            return GenerationOutcome(False, rate_limited)

        if isinstance(image, bytes):
            image = base64.b64encode(image).decode("ascii")
        if self.workspace.update_scene_generation(key, image_base64=image, pending=False, error=None) is None:
            print(f"[scheduler] Scene {scene_id} was deleted while rendering; result dropped")
        return GenerationOutcome(True, False)

    # -------------------------------------------------------------------------
    # Batch
    # -------------------------------------------------------------------------

    def _cool_down(self, progress_callback):
        progress_callback(f"⏳ Rate limit hit! Cooling down for {self.cooldown}s...", "warning")
        for remaining in range(self.cooldown, 0, -1):
            if self._stop.is_set():
                break
            self.cooldown_seconds = remaining
            self.sleep(1)
        self.cooldown_seconds = 0

    def _label(self, key, fallback):
        scene = self.workspace.find_prompt_by_key(key)
        return scene["id"] if scene else fallback

    def run_batch(self, scene_ids, progress_callback=None):
        """
        Render `scene_ids` strictly in order.

        A rate-limited scene is retried after a cooldown until it succeeds,
        fails for another reason, or the batch is stopped. Other failures are
        logged and skipped. Scenes are tracked by key, so edits made while
        the batch runs are followed; a scene deleted before its turn is skipped.

        A stop requested before the batch starts is honoured; callers clear
        the flag with clear_stop() before starting a new batch.

        Returns:
            False if another batch was already running, True otherwise
        """
        if not self._running.acquire(blocking=False):
            return False

        if progress_callback is None:
            progress_callback = lambda msg, t="info": print(f"[scheduler] {msg}")

        try:
            with self.workspace._lock:
                queue = [(scene_id, self.workspace.scene_key(scene_id)) for scene_id in scene_ids]
            queue = [(scene_id, key) for scene_id, key in queue if key is not None]
            total = len(queue)
            progress_callback(f"🎬 Starting batch generation ({total} scenes)...", "info")
            for index, (original_id, key) in enumerate(queue):
                if self._stop.is_set():
                    break

                self.progress = (index + 1, total)
                scene_id = self._label(key, None)
                if scene_id is None:
                    progress_callback(f"⏭️ Scene {original_id} was deleted, skipping", "warning")
                    continue
                progress_callback(f"🖼️ [{index + 1}/{total}] Rendering scene {scene_id}...", "batch")

                while not self._stop.is_set():
                    outcome = self._generate(key)
                    scene_id = self._label(key, scene_id)
                    if outcome.success:
                        progress_callback(f"✅ Scene {scene_id} done", "success")
                        self.sleep(self.success_delay)
                        break
                    if outcome.is_rate_limited:
                        self._cool_down(progress_callback)
                        continue
                    progress_callback(f"❌ Skipping scene {scene_id} due to error", "warning")
                    self.sleep(self.failure_delay)
                    break

            if self._stop.is_set():
                progress_callback("⚠️ Batch generation stopped", "complete")
            else:
                progress_callback("🎉 Batch generation complete!", "complete")
        finally:
            self.progress = (0, 0)
            self.cooldown_seconds = 0
            self._running.release()
        return True
