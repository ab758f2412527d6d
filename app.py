import streamlit as st
from streamlit.logger import get_logger

from utils.config import load_config
from utils.formatting import set_locale

logger = get_logger(__name__)


def main():
    st.set_page_config(page_title="Race Pacer", layout="wide")
    cfg = load_config()
    set_locale("en_US")
    st.session_state.setdefault("app_config", cfg)
    logger.debug("DATA_DIR: %s", cfg.data_dir)
    st.title("Race Pacer")
    st.caption("Open Race Pacing in the sidebar to plan segments, power targets and checkpoints.")

    with st.expander("Environment", expanded=False):
        st.write(
            {
                "DATA_DIR": str(cfg.data_dir),
                "RACE_START_TIME": cfg.race_start_time,
                "DEFAULT_ALTITUDE_ADJUSTMENT": cfg.default_altitude_adjustment,
                "INTENSITY_FACTORS": cfg.default_intensity_factors,
                "GPX_SAMPLE_MILES": cfg.gpx_sample_miles,
            }
        )


if __name__ == "__main__":
    main()
