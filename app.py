"""
Image Filter Advisor - Streamlit Application
Analyzes an uploaded image, recommends a filter and applies it.
"""
import streamlit as st

from filter_advisor.config import AdvisorConfig, configure_logging
from filter_advisor.errors import FilterAdvisorError
from filter_advisor.image_handler import ImageUploadHandler
from filter_advisor.models import DisplayState, FilterType, ImageUpload, KERNEL_SIZE_MAX, KERNEL_SIZE_MIN
from filter_advisor.session import FilterSession, create_session

# Configure Streamlit page
st.set_page_config(
    page_title="AI Image Filter",
    page_icon="🪄",
    layout="wide",
    initial_sidebar_state="collapsed"
)


@st.cache_resource
def load_config() -> AdvisorConfig:
    """Read configuration once per server process."""
    config = AdvisorConfig()
    configure_logging(config.log_level)
    return config


def get_session() -> FilterSession:
    """Return the FilterSession of the current browser session, creating it on first use."""
    if 'filter_session' not in st.session_state:
        st.session_state.filter_session = create_session(load_config())
        st.session_state.upload_key = 0
        st.session_state.last_upload_id = None
        st.session_state.error = None
    return st.session_state.filter_session


def render_rationale(recommendation) -> str:
    """Render rationale segments as markdown with emphasized spans in bold."""
    return "".join(f"**{text}**" if emphasized else text for text, emphasized in recommendation.segments())


# Callbacks run before the script reruns, so every panel renders the updated session

def on_filter_selected(session: FilterSession) -> None:
    session.set_filter_type(st.session_state.filter_type_select)


def on_kernel_changed(session: FilterSession) -> None:
    session.set_kernel_size(st.session_state.kernel_size_slider)


def on_card_clicked(session: FilterSession, filter_type: FilterType) -> None:
    session.set_filter_type(filter_type)


def on_accept(session: FilterSession) -> None:
    session.accept_recommendation()


def on_apply(session: FilterSession) -> None:
    try:
        session.apply()
        st.session_state.error = None
    except FilterAdvisorError as e:
        st.session_state.error = str(e)


def on_reset(session: FilterSession) -> None:
    session.reset()
    st.session_state.last_upload_id = None
    st.session_state.error = None
    # A new key gives a fresh, empty file uploader
    st.session_state.upload_key += 1


def handle_upload(session: FilterSession, uploaded_file) -> None:
    """Load a newly uploaded file into the session, once per distinct file."""
    upload_id = (uploaded_file.name, uploaded_file.size, getattr(uploaded_file, 'file_id', None))
    if st.session_state.last_upload_id == upload_id:
        return
    st.session_state.last_upload_id = upload_id

    upload = ImageUpload(
        filename=uploaded_file.name,
        data=uploaded_file.getvalue(),
        mime_type=uploaded_file.type or '',
    )
    try:
        session.load(upload)
        st.session_state.error = None
    except FilterAdvisorError as e:
        st.session_state.error = str(e)


def render_upload_panel(session: FilterSession) -> None:
    st.subheader("🖼️ Image Upload")
    uploaded_file = st.file_uploader(
        "Drop your image here or click to browse",
        type=ImageUploadHandler.SUPPORTED_EXTENSIONS,
        help="Supports JPG, JPEG, PNG",
        key=f"uploader_{st.session_state.upload_key}",
    )

    if uploaded_file is not None:
        handle_upload(session, uploaded_file)

    if st.session_state.error:
        st.error(f"❌ {st.session_state.error}")

    if session.state == DisplayState.NO_IMAGE:
        st.info("👆 Upload an image to get started")
        return

    if session.state == DisplayState.APPLIED:
        col_orig, col_filtered = st.columns(2)
        with col_orig:
            st.image(session.image, caption="Original", width='stretch')
        with col_filtered:
            st.image(session.output.pixels,
                     caption=f"✅ {session.output.descriptor.filter_type.label} Applied",
                     width='stretch')
    else:
        st.image(session.image, caption="Uploaded image", width='stretch')

    with st.expander("📋 Image info"):
        info = session.info
        col_info1, col_info2 = st.columns(2)
        with col_info1:
            st.write(f"**Size:** {info.width} × {info.height}")
            st.write(f"**Color mode:** {info.color_mode}")
        with col_info2:
            st.write(f"**File size:** {info.file_size / 1024 / 1024:.2f} MB")
            st.write(f"**Channels:** {info.channels}")

    metrics = session.metrics
    col_blur, col_bright, col_contrast = st.columns(3)
    with col_blur:
        st.metric("Blur", f"{metrics.blur:.2f}")
    with col_bright:
        st.metric("Brightness", f"{metrics.brightness:.2f}")
    with col_contrast:
        st.metric("Contrast", f"{metrics.contrast:.2f}")

    col_suggest, col_reset = st.columns([4, 1])
    with col_suggest:
        if st.button("✨ Get AI Suggestion", width='stretch', disabled=session.is_analyzing):
            session.request_recommendation()
            with st.spinner("Analyzing..."):
                session.deliver_pending(timeout=None)
    with col_reset:
        st.button("↺", help="Reset", width='stretch', on_click=on_reset, args=(session,))


def render_recommendation(session: FilterSession) -> None:
    recommendation = session.recommendation
    if recommendation is None:
        return

    with st.container(border=True):
        st.markdown("#### ✨ AI Recommendation")
        st.markdown(render_rationale(recommendation))
        if session.descriptor.filter_type != recommendation.filter_type:
            st.button(f"Use {recommendation.filter_type.label}", on_click=on_accept, args=(session,))


def render_filter_controls(session: FilterSession) -> None:
    st.subheader("🎛️ Filter Controls")

    # Keep the widgets in sync with parameters changed elsewhere (cards, accept, reset)
    st.session_state.filter_type_select = session.descriptor.filter_type
    st.session_state.kernel_size_slider = session.descriptor.kernel_size

    st.selectbox(
        "Filter Type",
        list(FilterType),
        format_func=lambda f: f.label,
        help=session.descriptor.filter_type.description,
        key="filter_type_select",
        on_change=on_filter_selected,
        args=(session,),
    )

    st.slider(
        "Kernel Size",
        min_value=KERNEL_SIZE_MIN,
        max_value=KERNEL_SIZE_MAX,
        step=2,
        help="Odd numbers only (1-31)",
        key="kernel_size_slider",
        on_change=on_kernel_changed,
        args=(session,),
    )

    st.button("🪄 Apply Filter", width='stretch', type='primary',
              disabled=session.state == DisplayState.NO_IMAGE,
              on_click=on_apply, args=(session,))

    png_bytes = session.download()
    if png_bytes is not None:
        st.download_button(
            label="📥 Download Filtered Image",
            data=png_bytes,
            file_name=session.download_name(),
            mime="image/png",
            width='stretch',
        )


def render_filter_cards(session: FilterSession) -> None:
    st.caption("Available Filters")
    columns = st.columns(2)
    for i, filter_type in enumerate(FilterType):
        with columns[i % 2]:
            marker = "● " if filter_type == session.descriptor.filter_type else ""
            st.button(f"{marker}{filter_type.label}\n\n{filter_type.tagline}",
                      key=f"card_{filter_type.value}", width='stretch',
                      on_click=on_card_clicked, args=(session, filter_type))


def main():
    """Main application entry point."""
    st.title("🪄 AI Image Filter App")
    st.markdown(
        "Upload your image, get intelligent filter recommendations, "
        "and apply filters with precise control."
    )

    session = get_session()

    # A rerun started while the suggestion was running interrupts the wait; resume it
    if session.pending is not None:
        with st.spinner("Analyzing..."):
            session.deliver_pending(timeout=None)

    col1, col2 = st.columns(2)
    with col1:
        render_upload_panel(session)
    with col2:
        render_recommendation(session)
        render_filter_controls(session)
        render_filter_cards(session)

    st.caption("Filters: Gaussian Blur, Median Blur, Low Pass and High Pass")


if __name__ == "__main__":
    main()
