"""
Storyboard Studio — Flask Application
JSON API for turning scripts into timed scenes and rendering them with Gemini.
"""
import io
import os
import json
import time
import threading
from pathlib import Path

from flask import Flask, request, jsonify, Response, send_file
from dotenv import load_dotenv

import story_engine
from image_utils import decode_data_url
from scheduler import GenerationScheduler
from storage import JsonStore
from workspace import Workspace, STYLE_LABELS, MIN_EPISODE_SCENES, MAX_EPISODE_SCENES

load_dotenv()

app = Flask(__name__)
app.secret_key = os.environ.get("SECRET_KEY", "storyboard-dev-key")

# Project storage
# Production deployments mount a volume at /app/data. Otherwise, use local.
vol_data_path = Path("/app/data")
if os.environ.get("DATA_DIR"):
    DATA_DIR = Path(os.environ["DATA_DIR"])
elif os.environ.get("FLASK_ENV") == "production" and vol_data_path.exists():
    DATA_DIR = vol_data_path
else:
    DATA_DIR = Path(__file__).parent / "data"

config = story_engine.load_config()

workspace = Workspace(
    JsonStore(DATA_DIR),
    max_reference_width=config["image_generation"]["max_reference_width"],
    reference_quality=config["image_generation"]["reference_jpeg_quality"],
)
workspace.hydrate()

scheduler = GenerationScheduler(
    workspace,
    cooldown=config["batch"]["cooldown_seconds"],
    success_delay=config["batch"]["success_delay_seconds"],
    failure_delay=config["batch"]["failure_delay_seconds"],
)

# SSE progress streams (per job)
_progress_streams = {}


# =============================================================================
# HELPERS
# =============================================================================

def progress_callback_factory(stream_id):
    """Create a progress callback that pushes to SSE stream."""
    def callback(message, msg_type="info"):
        print(f"[{stream_id}] {message}")
        if stream_id in _progress_streams:
            _progress_streams[stream_id].append({
                "message": message,
                "type": msg_type,
                "timestamp": time.time()
            })
    return callback


def _json_body():
    return request.get_json(silent=True) or {}


@app.errorhandler(ValueError)
def handle_value_error(e):
    return jsonify({"error": str(e)}), 400


@app.errorhandler(KeyError)
def handle_key_error(e):
    message = e.args[0] if e.args else "Not found"
    return jsonify({"error": str(message)}), 404


# =============================================================================
# ROUTES — State & settings
# =============================================================================

@app.route("/api/state")
def api_state():
    state = workspace.snapshot()
    state["batch"] = _batch_status()
    return jsonify(state)


@app.route("/api/settings/style", methods=["POST"])
def api_set_style():
    """Set an explicit style, or cycle anime -> aaa -> pixar without a body."""
    style_mode = _json_body().get("style_mode")
    mode = workspace.set_style(style_mode) if style_mode else workspace.cycle_style()
    return jsonify({"style_mode": mode, "message": f"Switched to {STYLE_LABELS[mode]} Mode"})


@app.route("/api/settings/voice", methods=["POST"])
def api_toggle_voice():
    enabled = workspace.toggle_voice_mode()
    message = "Voice Tags Enabled (Next script gen)" if enabled else "Voice Tags Disabled"
    return jsonify({"voice_mode": enabled, "message": message})


@app.route("/api/settings/no-music", methods=["POST"])
def api_toggle_no_music():
    enabled = workspace.toggle_no_music()
    message = "No Music Mode Enabled" if enabled else "No Music Mode Disabled"
    return jsonify({"no_music_mode": enabled, "message": message, "prompts": workspace.prompts})


@app.route("/api/lore", methods=["GET", "POST"])
def api_lore():
    if request.method == "POST":
        workspace.set_lore(_json_body().get("lore", ""))
    return jsonify({"lore": workspace.lore})


# =============================================================================
# ROUTES — References
# =============================================================================

@app.route("/api/references", methods=["POST"])
def api_add_reference():
    data = _json_body()
    entry = workspace.add_reference(
        data.get("type", "character"),
        data.get("handle") or data.get("id"),
        data.get("name"),
        data.get("description"),
        color=data.get("color"),
        voice=data.get("voice"),
    )
    return jsonify({"reference": entry, "message": f"Added new {entry['type']}: {entry['name']}"}), 201


@app.route("/api/references/<ref_id>", methods=["PATCH"])
def api_update_reference(ref_id):
    data = _json_body()
    fields = {k: data[k] for k in ("name", "description", "voice", "color") if k in data}
    return jsonify({"reference": workspace.update_reference(ref_id, **fields)})


@app.route("/api/references/<ref_id>", methods=["DELETE"])
def api_delete_reference(ref_id):
    workspace.delete_reference(ref_id)
    return jsonify({"deleted": ref_id, "message": "Reference deleted"})


@app.route("/api/references/<ref_id>/image", methods=["POST"])
def api_reference_image(ref_id):
    """Accepts a multipart 'image' file or JSON {"image": data URL / base64}."""
    if "image" in request.files:
        image_bytes = request.files["image"].read()
    else:
        image = _json_body().get("image")
        if not image:
            return jsonify({"error": "No image provided"}), 400
        image_bytes, _ = decode_data_url(image)

    try:
        entry = workspace.set_reference_image(ref_id, image_bytes)
    except OSError as e:
        return jsonify({"error": f"Could not read image: {e}"}), 400
    return jsonify({"reference": entry, "message": "Reference image updated!"})


# =============================================================================
# ROUTES — Scenes
# =============================================================================

@app.route("/api/prompts/import", methods=["POST"])
def api_import_script():
    data = _json_body()
    count = workspace.import_script(data.get("text", ""), append=bool(data.get("append")))
    if count == 0:
        return jsonify({"imported": 0, "message": "No scenes detected.", "type": "warning"})
    return jsonify({"imported": count, "message": f"Imported {count} scenes", "prompts": workspace.prompts})


@app.route("/api/prompts/<scene_id>", methods=["PATCH"])
def api_update_prompt(scene_id):
    content = _json_body().get("content")
    if content is None:
        return jsonify({"error": "content is required"}), 400
    return jsonify({"prompt": workspace.update_prompt(scene_id, content)})


@app.route("/api/prompts/<int:index>/move", methods=["POST"])
def api_move_prompt(index):
    workspace.move_prompt(index, _json_body().get("direction"))
    return jsonify({"prompts": workspace.prompts, "generations": workspace.generations})


@app.route("/api/prompts/<int:index>/insert", methods=["POST"])
def api_insert_prompt(index):
    workspace.insert_prompt(index, _json_body().get("position", "after"))
    return jsonify({"prompts": workspace.prompts, "generations": workspace.generations,
                    "message": "New scene inserted"})


@app.route("/api/prompts/<int:index>", methods=["DELETE"])
def api_delete_prompt(index):
    workspace.delete_prompt(index)
    return jsonify({"prompts": workspace.prompts, "generations": workspace.generations,
                    "message": "Scene deleted"})


@app.route("/api/prompts/<scene_id>/refine", methods=["POST"])
def api_refine_prompt(scene_id):
    instruction = (_json_body().get("instruction") or "").strip()
    if not instruction:
        return jsonify({"error": "instruction is required"}), 400

    ok = workspace.refine_prompt(scene_id, instruction)
    body = {
        "prompt": workspace.find_prompt(scene_id),
        "generation": workspace.get_generation(scene_id),
    }
    if not ok:
        body["error"] = "Failed to refine prompt"
        return jsonify(body), 502
    body["message"] = "Prompt refined!"
    return jsonify(body)


@app.route("/api/prompts/next-beat", methods=["POST"])
def api_next_beat():
    try:
        count = workspace.next_beat()
    except Exception as e:
        print(f"[next_beat] Failed: {e}")
        return jsonify({"error": "Failed to generate next beat"}), 502

    if count == 0:
        return jsonify({"imported": 0, "message": "AI response was empty. Try again.", "type": "warning"})
    return jsonify({"imported": count, "message": "Next beat added!", "prompts": workspace.prompts})


# =============================================================================
# ROUTES — Script drafting (Gemini text)
# =============================================================================

@app.route("/api/scripts/draft", methods=["POST"])
def api_draft_script():
    idea = _json_body().get("idea", "")
    if not idea.strip():
        return jsonify({"error": "idea is required"}), 400
    try:
        script = workspace.draft_script(idea)
    except Exception as e:
        return jsonify({"error": f"Script generation failed: {e}"}), 502
    return jsonify({"script": script})


@app.route("/api/scripts/breakdown", methods=["POST"])
def api_breakdown_script():
    text = _json_body().get("text", "")
    if not text.strip():
        return jsonify({"error": "text is required"}), 400
    try:
        script = workspace.break_down_script(text)
    except Exception as e:
        return jsonify({"error": f"Breakdown failed: {e}"}), 502
    return jsonify({"script": script})


@app.route("/api/scripts/episode", methods=["POST"])
def api_generate_episode():
    """Writes a full episode in the background and replaces the board with it."""
    data = _json_body()
    idea = data.get("idea", "")
    scene_count = int(data.get("scene_count", 12))
    if not idea.strip():
        return jsonify({"error": "idea is required"}), 400
    if not MIN_EPISODE_SCENES <= scene_count <= MAX_EPISODE_SCENES:
        return jsonify({"error": f"scene_count must be between {MIN_EPISODE_SCENES} and {MAX_EPISODE_SCENES}"}), 400

    _progress_streams["episode"] = []
    callback = progress_callback_factory("episode")

    def run():
        try:
            callback(f"✍️ Writing {scene_count}-scene episode...", "info")
            count = workspace.generate_episode(idea, scene_count)
            if count == 0:
                callback("⚠️ No scenes detected.", "complete")
            else:
                callback(f"✅ Episode ready: {count} scenes", "complete")
        except Exception as e:
            callback(f"❌ Episode generation failed: {str(e)}", "error")

    thread = threading.Thread(target=run, daemon=True)
    thread.start()

    return jsonify({"status": "generating", "stream": "episode"})


# =============================================================================
# ROUTES — Image generation
# =============================================================================

def _batch_status():
    current, total = scheduler.progress
    return {
        "running": scheduler.is_running,
        "current": current,
        "total": total,
        "cooldown_seconds": scheduler.cooldown_seconds,
    }


@app.route("/api/generate/<scene_id>", methods=["POST"])
def api_generate(scene_id):
    if workspace.find_prompt(scene_id) is None:
        return jsonify({"error": f"Scene not found: {scene_id}"}), 404

    outcome = scheduler.generate_one(scene_id)
    return jsonify({
        "success": outcome.success,
        "is_rate_limited": outcome.is_rate_limited,
        "generation": workspace.get_generation(scene_id),
    })


@app.route("/api/batch/start", methods=["POST"])
def api_batch_start():
    if scheduler.is_running:
        return jsonify({"error": "Batch generation already running"}), 409

    scene_ids = _json_body().get("scene_ids") or [p["id"] for p in workspace.prompts]

    _progress_streams["batch"] = []
    callback = progress_callback_factory("batch")
    # Cleared here, not in the worker, so a stop sent right after this request is kept.
    scheduler.clear_stop()

    def run():
        try:
            scheduler.run_batch(scene_ids, callback)
        except Exception as e:
            callback(f"❌ Batch failed: {str(e)}", "error")

    thread = threading.Thread(target=run, daemon=True)
    thread.start()

    return jsonify({"status": "generating", "stream": "batch", "total": len(scene_ids)})


@app.route("/api/batch/stop", methods=["POST"])
def api_batch_stop():
    scheduler.stop()
    return jsonify({"status": "stopping"})


@app.route("/api/batch")
def api_batch_status():
    return jsonify(_batch_status())


@app.route("/api/progress/<stream_id>")
def progress_stream(stream_id):
    """SSE endpoint for real-time progress updates."""
    # Only initialize if no stream exists yet (don't clear mid-job!)
    if stream_id not in _progress_streams:
        _progress_streams[stream_id] = []

    def generate():
        last_index = 0
        heartbeat = 0

        while True:
            messages = _progress_streams.get(stream_id, [])

            if last_index < len(messages):
                for msg in messages[last_index:]:
                    yield f"data: {json.dumps(msg)}\n\n"
                    if msg.get("type") in ("complete", "error"):
                        return
                last_index = len(messages)

            # Heartbeat every 15 seconds
            heartbeat += 1
            if heartbeat % 30 == 0:
                yield ": heartbeat\n\n"

            time.sleep(0.5)

    return Response(
        generate(),
        mimetype="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no"
        }
    )


# =============================================================================
# ROUTES — Presets
# =============================================================================

@app.route("/api/presets", methods=["GET"])
def api_list_presets():
    return jsonify({"presets": workspace.presets})


@app.route("/api/presets", methods=["POST"])
def api_save_preset():
    preset = workspace.save_preset(_json_body().get("name"))
    return jsonify({"preset": preset, "message": "Setup saved as preset!"}), 201


@app.route("/api/presets/import", methods=["POST"])
def api_import_preset():
    if "file" in request.files:
        try:
            doc = json.loads(request.files["file"].read().decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return jsonify({"error": "Invalid preset file format."}), 400
    else:
        doc = request.get_json(silent=True)
    preset = workspace.import_preset(doc)
    return jsonify({"preset": preset, "message": f"Imported preset: {preset['name']}"}), 201


@app.route("/api/presets/<preset_id>/load", methods=["POST"])
def api_load_preset(preset_id):
    workspace.load_preset(preset_id)
    return jsonify({
        "characters": workspace.characters,
        "locations": workspace.locations,
        "message": "Preset loaded successfully!",
    })


@app.route("/api/presets/<preset_id>/export")
def api_export_preset(preset_id):
    doc = workspace.export_preset(preset_id)
    safe_name = "".join(c if c.isalnum() else "_" for c in doc["name"]).lower()
    return Response(
        json.dumps(doc, indent=2, ensure_ascii=False),
        mimetype="application/json",
        headers={"Content-Disposition": f'attachment; filename="preset_{safe_name}.json"'}
    )


@app.route("/api/presets/<preset_id>", methods=["DELETE"])
def api_delete_preset(preset_id):
    workspace.delete_preset(preset_id)
    return jsonify({"deleted": preset_id, "message": "Preset deleted."})


# =============================================================================
# ROUTES — Project
# =============================================================================

@app.route("/api/reset", methods=["POST"])
def api_reset():
    if scheduler.is_running:
        return jsonify({"error": "Stop the batch before resetting"}), 409
    workspace.reset()
    return jsonify({"message": "Project reset to defaults"})


@app.route("/api/clean-slate", methods=["POST"])
def api_clean_slate():
    if scheduler.is_running:
        return jsonify({"error": "Stop the batch before wiping the project"}), 409
    workspace.clean_slate()
    return jsonify({"message": "Project wiped clean."})


@app.route("/api/export")
def api_export():
    """Download references, scene texts and rendered frames as a ZIP."""
    buf = io.BytesIO(workspace.export_zip())
    return send_file(buf, mimetype="application/zip",
                     as_attachment=True,
                     download_name="Storyboard_Project.zip")


# =============================================================================
# MAIN
# =============================================================================

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5050))
    debug = os.environ.get("FLASK_ENV") == "development"
    app.run(host="0.0.0.0", port=port, debug=debug)
