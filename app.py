"""
SketchLab - Streamlit Application

Turn a reference image and a few directives into several p5.js sketches at
once, preview and run each one in its own sandbox, then edit, explain and
export them. Also includes a chat assistant and an image / video studio.
"""

import asyncio
from typing import Dict, List

import streamlit as st
import streamlit.components.v1 as components

from sketchlab.catalog import LIBRARIES, select_libraries
from sketchlab.config import Config, ConfigError, configure_logging, get_config
from sketchlab.errors import describe_error
from sketchlab.export import bundle_filename, export_candidate
from sketchlab.llm.azure_openai_client import AzureOpenAIClient, AzureOpenAIVideoJobs, load_prompt
from sketchlab.orchestrator import GenerationOrchestrator, explain_candidate, run_chat
from sketchlab.poller import generate_video
from sketchlab.sandbox import (
    BrowserRuntime,
    CandidateRegistry,
    StatusChannel,
    build_document,
    preview_markup,
    run_sandboxes,
)
from sketchlab.schemas import (
    Candidate,
    ChatTurn,
    GenerationRequest,
    MediaResource,
    ReferenceImage,
    SamplingConfig,
)


# Page configuration
st.set_page_config(
    page_title="SketchLab",
    page_icon="🎨",
    layout="wide",
)

# Custom CSS for better styling
st.markdown("""
<style>
    .main-header {
        font-size: 2.5rem;
        font-weight: 700;
        color: #111827;
        margin-bottom: 0.5rem;
    }
    .sub-header {
        font-size: 1.1rem;
        color: #666;
        margin-bottom: 2rem;
    }
    .status-badge {
        display: inline-block;
        padding: 2px 10px;
        border-radius: 999px;
        font-size: 0.8rem;
        font-weight: 600;
    }
    .status-idle { background-color: #f0f2f6; color: #555; }
    .status-loading { background-color: #fff3cd; color: #856404; }
    .status-success { background-color: #d4edda; color: #155724; }
    .status-error { background-color: #f8d7da; color: #721c24; }
</style>
""", unsafe_allow_html=True)


STATUS_LABELS = {
    "idle": "Idle",
    "loading": "Running",
    "success": "Running fine",
    "error": "Error",
}


def init_session_state():
    """Initialize session state variables."""
    # Live candidates of the current batch
    if "registry" not in st.session_state:
        st.session_state.registry = CandidateRegistry()
    if "addon_selection" not in st.session_state:
        st.session_state.addon_selection = {}
    if "explanations" not in st.session_state:
        st.session_state.explanations = {}
    if "last_directives" not in st.session_state:
        st.session_state.last_directives = ""

    # Chat history
    if "chat_history" not in st.session_state:
        st.session_state.chat_history = []

    # Studio output
    if "media" not in st.session_state:
        st.session_state.media = []

    # Error tracking
    if "last_error" not in st.session_state:
        st.session_state.last_error = None


def validate_config() -> bool:
    """Validate configuration and show error if missing."""
    try:
        config = get_config()
        configure_logging(config.log_level)
        return True
    except ConfigError as e:
        st.error(f"⚠️ Configuration Error\n\n{str(e)}")
        st.info(
            "Please create a `.env` file in the project root with the required Azure OpenAI credentials. "
            "See `.env.example` for reference."
        )
        return False


def display_error(exc: BaseException):
    """Show the categorized error surface for a failed request."""
    info = describe_error(exc)
    st.error(f"**{info.title}**\n\n{info.message}")
    st.caption(f"💡 {info.advice}")
    with st.expander("Technical details"):
        st.code(f"{type(exc).__name__}: {exc}", language="text")


# =============================================================================
# ASYNC TASKS
# =============================================================================
# Each task opens its own client / browser inside the event loop that runs it.

async def _generate_batch(config: Config, request: GenerationRequest) -> List[Candidate]:
    async with AzureOpenAIClient(config) as client:
        return await GenerationOrchestrator(client).generate_batch(request)


async def _run_candidates(config: Config, registry: CandidateRegistry, candidates: List[Candidate], addons: Dict):
    channel = StatusChannel()
    async with BrowserRuntime() as runtime:
        await run_sandboxes(
            candidates,
            runtime,
            channel,
            addons=addons,
            settle_ms=config.settle_ms,
            timeout=config.sandbox_timeout,
        )
    channel.drain(registry)


async def _explain(config: Config, candidate: Candidate) -> Dict:
    async with AzureOpenAIClient(config) as client:
        return await explain_candidate(client, candidate)


async def _chat(config: Config, message: str, history: List[ChatTurn], settings: Dict) -> Dict:
    async with AzureOpenAIClient(config) as client:
        return await run_chat(
            client,
            message,
            history,
            mode=settings["mode"],
            sampling=settings["sampling"],
            reasoning=settings["reasoning"],
        )


async def _image(config: Config, prompt: str, size: str, reference: ReferenceImage = None) -> MediaResource:
    async with AzureOpenAIClient(config) as client:
        return await client.generate_image(prompt, size=size, reference_image=reference)


async def _video(config: Config, prompt: str, size: str, seconds: str) -> MediaResource:
    async with AzureOpenAIClient(config) as client:
        return await generate_video(
            AzureOpenAIVideoJobs(client),
            prompt,
            interval=config.poll_interval,
            size=size,
            seconds=seconds,
        )


def selected_addons(candidate_id: int):
    return select_libraries(st.session_state.addon_selection.get(candidate_id, []))


def run_in_sandbox(candidates: List[Candidate]):
    """Run candidates in isolated browser contexts and apply their statuses."""
    registry: CandidateRegistry = st.session_state.registry
    addons = {c.id: selected_addons(c.id) for c in candidates}
    with st.spinner(f"Running {len(candidates)} sketch(es) in the sandbox..."):
        try:
            asyncio.run(_run_candidates(get_config(), registry, candidates, addons))
        except Exception as e:
            # Per-candidate failures already ended as error statuses
            st.error(f"Sandbox unavailable: {e}")


# =============================================================================
# GENERATOR
# =============================================================================

def display_status_badge(candidate: Candidate):
    st.markdown(
        f'<span class="status-badge status-{candidate.status}">{STATUS_LABELS[candidate.status]}</span>',
        unsafe_allow_html=True,
    )
    if candidate.status == "error" and candidate.last_error:
        st.caption(f"⚠️ {candidate.last_error}")


def display_candidate(index: int, candidate: Candidate):
    """Display one candidate card."""
    registry: CandidateRegistry = st.session_state.registry

    header_col, status_col = st.columns([3, 2])
    with header_col:
        st.markdown(f"**Sketch {index + 1}**")
    with status_col:
        display_status_badge(candidate)

    st.multiselect(
        "Libraries",
        options=[lib.id for lib in LIBRARIES],
        format_func=lambda lib_id: next(lib.display_name for lib in LIBRARIES if lib.id == lib_id),
        default=st.session_state.addon_selection.get(candidate.id, []),
        key=f"addons_{candidate.id}",
        on_change=_store_addons,
        args=(candidate.id,),
    )

    preview_tab, code_tab, reasoning_tab, explain_tab = st.tabs(["🖼️ Preview", "💻 Code", "🧠 Reasoning", "📖 Guide"])

    with preview_tab:
        document = build_document(
            candidate.id,
            candidate.source_code,
            addons=selected_addons(candidate.id),
            settle_ms=get_config().settle_ms,
        )
        components.html(preview_markup(document, height=500), height=520)
        if st.button("▶️ Run in sandbox", key=f"run_{candidate.id}", use_container_width=True):
            run_in_sandbox([candidate])
            st.rerun()

    with code_tab:
        edited = st.text_area(
            "sketch.js",
            value=candidate.source_code,
            height=400,
            key=f"code_{candidate.id}",
            label_visibility="collapsed",
        )
        if edited != candidate.source_code:
            registry.edit_source(candidate.id, edited)
            st.session_state.explanations.pop(candidate.id, None)
            st.rerun()

    with reasoning_tab:
        st.markdown(candidate.raw_response_text or "_No response text._")

    with explain_tab:
        explanation = st.session_state.explanations.get(candidate.id)
        if explanation is None:
            if st.button("📖 Explain this sketch", key=f"explain_{candidate.id}"):
                with st.spinner("Writing the guide..."):
                    try:
                        st.session_state.explanations[candidate.id] = asyncio.run(_explain(get_config(), candidate))
                        st.rerun()
                    except Exception as e:
                        display_error(e)
        else:
            st.markdown(explanation["explanation"])
            if explanation["doc_links"]:
                st.markdown("**Reference**")
                st.markdown(" · ".join(f"[{link['name']}]({link['url']})" for link in explanation["doc_links"]))

    st.download_button(
        label="📦 Export (.zip)",
        data=export_candidate(candidate, selected_addons(candidate.id)),
        file_name=bundle_filename(candidate, st.session_state.last_directives),
        mime="application/zip",
        key=f"export_{candidate.id}",
        use_container_width=True,
    )


def _store_addons(candidate_id: int):
    st.session_state.addon_selection[candidate_id] = list(st.session_state[f"addons_{candidate_id}"])


def handle_generator_tab(settings: Dict):
    """Image / prompt to sketches."""
    st.subheader("🎨 Generator")
    st.caption("Upload a reference image, add directives, and get several independent sketches.")

    col1, col2 = st.columns([1, 2])
    with col1:
        upload = st.file_uploader("Reference image", type=["png", "jpg", "jpeg", "webp"])
        if upload is not None:
            st.image(upload, use_container_width=True)
    with col2:
        directives = st.text_area(
            "Directives",
            placeholder="e.g. Make the shapes react to the mouse and slowly shift colors",
            height=140,
            key="generator_directives",
        )

    can_generate = upload is not None or bool(directives.strip())
    if st.button("✨ Generate", type="primary", use_container_width=True, disabled=not can_generate):
        st.session_state.last_error = None
        reference = None
        if upload is not None:
            reference = ReferenceImage(data=upload.getvalue(), mime_type=upload.type or "image/jpeg")

        request = GenerationRequest(
            prompt=settings["persona"],
            instructions=directives,
            reference_image=reference,
            sampling=settings["sampling"],
            concurrency=settings["concurrency"],
            mode=settings["mode"],
            reasoning=settings["reasoning"],
        )

        with st.spinner(f"Generating {request.concurrency} sketches..."):
            try:
                candidates = asyncio.run(_generate_batch(get_config(), request))
                st.session_state.registry.replace(candidates)
                st.session_state.addon_selection = {}
                st.session_state.explanations = {}
                st.session_state.last_directives = directives.strip()
                st.rerun()
            except Exception as e:
                st.session_state.last_error = e

    if st.session_state.last_error is not None:
        display_error(st.session_state.last_error)

    registry: CandidateRegistry = st.session_state.registry
    candidates = registry.candidates()
    if not candidates:
        return

    st.divider()
    if st.button("▶️ Run all in sandbox", use_container_width=True):
        run_in_sandbox(candidates)
        st.rerun()

    columns = st.columns(len(candidates))
    for index, (column, candidate) in enumerate(zip(columns, candidates)):
        with column:
            display_candidate(index, candidate)


# =============================================================================
# CHAT
# =============================================================================

def handle_chat_tab(settings: Dict):
    """Conversational assistant, using the sidebar's mode and sampling."""
    st.subheader("💬 Chat")

    for turn in st.session_state.chat_history:
        with st.chat_message(turn.role):
            st.markdown(turn.content)

    message = st.chat_input("Ask about p5.js, generative art, or your sketches...")
    if message:
        with st.spinner("Thinking..."):
            try:
                result = asyncio.run(_chat(get_config(), message, st.session_state.chat_history, settings))
                st.session_state.chat_history = result["chat_history"]
                st.rerun()
            except Exception as e:
                display_error(e)

    if st.session_state.chat_history and st.button("🗑️ Clear conversation"):
        st.session_state.chat_history = []
        st.rerun()


# =============================================================================
# STUDIO
# =============================================================================

def handle_studio_tab():
    """Image and video generation."""
    st.subheader("🎬 Studio")

    kind = st.radio("Output", options=["Image", "Video"], horizontal=True)
    prompt = st.text_area("Describe what to create", height=100, key="studio_prompt")

    reference = None
    if kind == "Image":
        size = st.selectbox("Size", options=["1024x1024", "1536x1024", "1024x1536"])
        upload = st.file_uploader("Image to edit (optional)", type=["png", "jpg", "jpeg", "webp"], key="studio_upload")
        if upload is not None:
            reference = ReferenceImage(data=upload.getvalue(), mime_type=upload.type or "image/png")
    else:
        size = st.selectbox("Aspect", options=["1280x720", "720x1280"])
        seconds = st.selectbox("Length (seconds)", options=["4", "8", "12"])

    if st.button("✨ Create", type="primary", disabled=not prompt.strip()):
        config = get_config()
        try:
            if kind == "Image":
                with st.spinner("Creating image..."):
                    media = asyncio.run(_image(config, prompt.strip(), size, reference))
            else:
                with st.spinner("Rendering video... this can take a few minutes."):
                    media = asyncio.run(_video(config, prompt.strip(), size, seconds))
            st.session_state.media.insert(0, media)
        except Exception as e:
            display_error(e)

    for i, media in enumerate(st.session_state.media):
        if media.kind == "image":
            st.image(media.data, use_container_width=True)
            extension = "png"
        else:
            st.video(media.data)
            extension = "mp4"
        st.download_button(
            "⬇️ Download",
            data=media.data,
            file_name=f"sketchlab-{media.kind}-{i}.{extension}",
            mime=media.mime_type,
            key=f"media_{i}",
        )


# =============================================================================
# MAIN APPLICATION
# =============================================================================

def display_sidebar() -> Dict:
    """Sidebar settings shared by the generator."""
    config = get_config()
    with st.sidebar:
        st.header("Settings")
        mode = st.radio(
            "Performance",
            options=["pro", "lite"],
            format_func=lambda m: "Pro (quality)" if m == "pro" else "Lite (speed)",
            horizontal=True,
        )
        reasoning = st.toggle(
            "🧠 Thinking mode",
            value=False,
            disabled=mode != "pro",
            help="Extended reasoning on the pro deployment. Needs a reasoning-capable model.",
        )
        concurrency =st.slider("Concurrent sketches", min_value=1, max_value=6, value=min(config.concurrency, 6))

        with st.expander("⚙️ Sampling"):
            temperature = st.slider("Temperature", 0.0, 2.0, 1.0, 0.05)
            top_k = st.slider("Top-K", 1, 100, 64)
            top_p = st.slider("Top-P", 0.05, 1.0, 0.95, 0.05)

        with st.expander("🧑‍🏫 Persona prompt"):
            persona = st.text_area("Persona", value=load_prompt("sketch_persona.txt"), height=220,
                                   label_visibility="collapsed")

        st.divider()

        st.header("Session Info")
        registry: CandidateRegistry = st.session_state.registry
        st.write(f"🎨 Sketches: {len(registry)}")
        st.write(f"💬 Chat messages: {len(st.session_state.chat_history)}")

        if st.button("🗑️ Clear Session", use_container_width=True):
            for key in ["registry", "addon_selection", "explanations", "chat_history", "media", "last_error"]:
                st.session_state.pop(key, None)
            st.rerun()

    return {
        "mode": mode,
        "reasoning": reasoning and mode == "pro",
        "concurrency": concurrency,
        "sampling": SamplingConfig(temperature=temperature, top_k=top_k, top_p=top_p),
        "persona": persona,
    }


def main():
    """Main application entry point."""
    init_session_state()

    # Header
    st.markdown('<p class="main-header">🎨 SketchLab</p>', unsafe_allow_html=True)
    st.markdown(
        '<p class="sub-header">Images and ideas in, runnable p5.js sketches out</p>',
        unsafe_allow_html=True
    )

    # Validate configuration
    if not validate_config():
        return

    settings = display_sidebar()

    generator_tab, chat_tab, studio_tab = st.tabs(["🎨 Generator", "💬 Chat", "🎬 Studio"])
    with generator_tab:
        handle_generator_tab(settings)
    with chat_tab:
        handle_chat_tab(settings)
    with studio_tab:
        handle_studio_tab()


if __name__ == "__main__":
    main()
