# ==========================================
# IMPORT LIBRARIES
# ==========================================
# Streamlit: Web framework for building interactive dashboards
# NumPy: Numerical computing for matrix operations and arrays
# Pandas: Data manipulation and analysis
# Plotly: Interactive visualization library

import logging

import streamlit as st
import numpy as np
import pandas as pd
import plotly.graph_objects as go

from markov_cea import CEAError, ModelInputs, ModelSettings, StateSpace, run_cea
from markov_cea.cohort import membership_frame
from markov_cea.defaults import BASE_PARAMS, DEFAULT_DISCOUNT_PCT, DEFAULT_N_CYCLES, MAX_CYCLES, demo_inputs
from markov_cea.economics import trace_frame
from markov_cea.transitions import matrix_frame

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# ==========================================
# MODEL RUNNER (CACHED)
# ==========================================
# Identical inputs reuse the previous result.

@st.cache_data(show_spinner="Running Markov model...")
def run_cached(states, tables, n_cycles, discount_pct):
    """
    Run both arms for one set of tables.

    Args:
        states (tuple): State names
        tables (dict): Table name -> DataFrame (keys follow ModelInputs fields)
        n_cycles (int): Number of monthly cycles
        discount_pct (float): Annual discount rate in percent
    """
    inputs = ModelInputs(state_space=StateSpace(states), **tables)
    settings = ModelSettings.from_percent(n_cycles, discount_pct)
    return run_cea(inputs, settings)


def read_upload(uploaded, default):
    """Uploaded CSV as a DataFrame, or the demonstration table when nothing is uploaded."""
    if uploaded is None:
        return default
    return pd.read_csv(uploaded)


# ==========================================
# STREAMLIT USER INTERFACE
# ==========================================

st.set_page_config(page_title="Hypertension CEA", layout="wide")
st.title("Hypertension Treatment Cost-Effectiveness (Markov Cohort Model)")

# Session state persists results across reruns
if 'results' not in st.session_state:
    st.session_state.results = None

# ==========================================
# SIDEBAR: INPUT CONTROLS
# ==========================================

st.sidebar.header("1. Simulation Settings")

n_cycles = st.sidebar.number_input(
    "Number of Cycles (months)",
    value=DEFAULT_N_CYCLES,
    min_value=1,
    max_value=MAX_CYCLES,
    step=12,
    help="Each cycle is one month. 240 cycles = 20 years."
)

discount_pct = st.sidebar.slider(
    "Discount Rate (%)",
    0.0, 10.0, float(DEFAULT_DISCOUNT_PCT), 0.5,
    help="Annual discount rate for costs and QALYs, applied as the equivalent monthly rate."
)

st.sidebar.divider()

st.sidebar.header("2. Model Structure")
states_text = st.sidebar.text_input(
    "Health States (comma separated)",
    value=", ".join(BASE_PARAMS['states']),
    help="Must include 'Hypertension' (starting state) and 'Death' (absorbing state)."
)
states = tuple(s.strip() for s in states_text.split(",") if s.strip())

st.sidebar.divider()

st.sidebar.header("3. Input Tables (CSV)")
st.sidebar.caption("Leave empty to use the built-in demonstration model.")

demo = demo_inputs(n_cycles=MAX_CYCLES)
uploads = {
    'transition_rates': st.sidebar.file_uploader("Transition rates (From, To, AnnualRate)", type="csv"),
    'hazard_ratios': st.sidebar.file_uploader("Hazard ratios (From, To, HR)", type="csv"),
    'hazard_ratios_treat': st.sidebar.file_uploader("Treatment hazard ratios (From, To, HR)", type="csv"),
    'background_mortality': st.sidebar.file_uploader("Background mortality (AnnualProb)", type="csv"),
    'costs': st.sidebar.file_uploader("Costs (States, Cost)", type="csv"),
    'costs_treat': st.sidebar.file_uploader("Treatment costs (States, Cost)", type="csv"),
    'utilities': st.sidebar.file_uploader("Utilities (States, Utility)", type="csv"),
    'utility_multipliers': st.sidebar.file_uploader("Utility multipliers (Multiplier)", type="csv"),
}

# ==========================================
# MAIN ANALYSIS EXECUTION
# ==========================================

if st.button("Run Analysis", type="primary"):
    tables = {name: read_upload(f, getattr(demo, name)) for name, f in uploads.items()}
    try:
        result = run_cached(states, tables, int(n_cycles), discount_pct)
    except CEAError as exc:
        logger.error("Model run failed: %s", exc)
        st.error(f"**{type(exc).__name__}:** {exc}")
        st.session_state.results = None
    else:
        st.session_state.results = {
            'result': result,
            'n_cycles': int(n_cycles),
            'discount_pct': discount_pct,
        }

# ==========================================
# DISPLAY RESULTS
# ==========================================

if st.session_state.results:
    result = st.session_state.results['result']
    out = result.output
    sp = result.control.inputs.state_space

    st.subheader(
        f"Results: {st.session_state.results['n_cycles']} monthly cycles, "
        f"{st.session_state.results['discount_pct']:.1f}% discount"
    )

    col1, col2, col3 = st.columns(3)

    with col1:
        st.metric(
            "Incremental Cost",
            f"{out.inccost:,.2f}",
            help="Discounted cost of treatment minus control, per person"
        )

    with col2:
        st.metric(
            "Incremental QALYs",
            f"{out.incqaly:,.4f}",
            help="Discounted QALYs of treatment minus control, per person"
        )

    with col3:
        if not out.icer_defined:
            icer_label = "No QALY difference"
        elif out.icer < 0 and out.incqaly > 0:
            icer_label = "Dominant"        # cheaper and more effective
        elif out.icer < 0:
            icer_label = "Dominated"       # costlier and less effective
        else:
            icer_label = None
        st.metric(
            "ICER (cost/QALY)",
            out.icer_label("{:,.0f}"),
            delta=icer_label,
            delta_color="off",
            help="Incremental cost per QALY gained. Undefined when both arms have equal QALYs."
        )

    # ==========================================
    # RESULT TABLE
    # ==========================================
    st.dataframe(
        out.to_frame().style.format("{:,.4f}"),
        use_container_width=True
    )

    st.divider()

    # ==========================================
    # COHORT TRACE
    # ==========================================
    st.subheader("Cohort Trace")

    arm_tabs = st.tabs(["Control", "Treatment"])
    for tab, arm in zip(arm_tabs, [result.control, result.treatment]):
        with tab:
            trace = membership_frame(arm.trace, sp)
            fig = go.Figure()
            for state in sp:
                fig.add_trace(go.Scatter(
                    x=trace.index,
                    y=trace[state],
                    mode='lines',
                    name=state
                ))
            fig.update_layout(
                title=f"State Membership: {arm.label}",
                xaxis_title="Cycle (month)",
                yaxis_title="Proportion of Cohort",
                height=450
            )
            st.plotly_chart(fig, use_container_width=True)

            with st.expander("Transition matrix (cycle 0)"):
                st.dataframe(matrix_frame(arm.matrix, sp, 0).style.format("{:.6f}"), use_container_width=True)

    # ==========================================
    # STATE DISTRIBUTION (PERSON-MONTHS)
    # ==========================================
    st.subheader("Time Spent in Each State")

    df_dist = pd.DataFrame({
        "Health State": list(sp),
        "Person-Months (Control)": [result.control.state_distribution[s] for s in sp],
        "Person-Months (Treatment)": [result.treatment.state_distribution[s] for s in sp],
    })
    df_dist["Difference"] = df_dist["Person-Months (Treatment)"] - df_dist["Person-Months (Control)"]
    st.dataframe(
        df_dist.style.format({
            "Person-Months (Control)": "{:,.3f}",
            "Person-Months (Treatment)": "{:,.3f}",
            "Difference": "{:+,.3f}"
        }),
        use_container_width=True,
        hide_index=True
    )

    # ==========================================
    # DISCOUNTED TRACE DOWNLOAD
    # ==========================================
    disc_control = trace_frame(result.control.discounted_trace).add_prefix("Control ")
    disc_treat = trace_frame(result.treatment.discounted_trace).add_prefix("Treatment ")
    per_cycle = pd.concat([disc_control, disc_treat], axis=1)

    cumulative = per_cycle.cumsum()
    fig = go.Figure()
    for column, color in zip(["Control Cost", "Treatment Cost"], ['lightgrey', 'teal']):
        fig.add_trace(go.Scatter(x=cumulative.index, y=cumulative[column], mode='lines',
                                 name=column, line=dict(color=color)))
    fig.update_layout(
        title="Cumulative Discounted Cost",
        xaxis_title="Cycle (month)",
        yaxis_title="Cost",
        height=400
    )
    st.plotly_chart(fig, use_container_width=True)

    st.download_button(
        "Download per-cycle discounted costs & QALYs (CSV)",
        per_cycle.to_csv().encode("utf-8"),
        file_name="discounted_trace.csv",
        mime="text/csv"
    )

    with st.expander("Summary values"):
        st.json({k: (None if v is None else float(np.round(v, 6))) for k, v in out.as_dict().items()})
