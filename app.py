import streamlit as st
import plotly.express as px
import logging

from gstr2b_recon.error_handler import ErrorHandler, ReconciliationError
from gstr2b_recon.reconciliation import reconcile_records
from gstr2b_recon.reports import ReportType
from gstr2b_recon.settings import SettingsManager
from gstr2b_recon.workbook import EXPORT_CATEGORIES, XLSX_MIME, export_records, load_sources

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

st.set_page_config(page_title="GST Reconciliation Tool", page_icon="📊", layout="wide")


def initialize_session_state():
    """Initialize session state variables if they don't exist."""
    if 'reconciliation_result' not in st.session_state:
        st.session_state.reconciliation_result = None
    if 'reconciliation_error' not in st.session_state:
        st.session_state.reconciliation_error = None
    if 'error_handler' not in st.session_state:
        st.session_state.error_handler = ErrorHandler()
    if 'settings' not in st.session_state:
        st.session_state.settings = SettingsManager().settings


def run_reconciliation(books_file, gstr2b_file, report_type: ReportType):
    st.session_state.reconciliation_result = None
    st.session_state.reconciliation_error = None
    settings = st.session_state.settings
    try:
        books_records, gstr2b_records = load_sources(books_file, gstr2b_file, report_type, settings)
        result = reconcile_records(books_records, gstr2b_records, report_type, settings)
    except ReconciliationError as e:
        st.session_state.reconciliation_error = st.session_state.error_handler.handle_error(e)
        return
    except Exception as e:
        logger.exception("Unexpected error during reconciliation")
        st.session_state.reconciliation_error = st.session_state.error_handler.handle_error(e)
        return
    st.session_state.reconciliation_result = result


def render_error(error_entry):
    st.error(f"**Error**\n\n{error_entry['message']}")
    suggestions = error_entry.get('suggestions') or []
    if suggestions:
        st.info("💡 " + "\n\n💡 ".join(suggestions))


def render_summary(result):
    summary = result.summary
    cols = st.columns(6)
    cols[0].metric("In Books", summary.total_in_books)
    cols[1].metric("In GSTR-2B", summary.total_in_gstr2b)
    cols[2].metric("Matched", summary.matched)
    cols[3].metric("Partially Matched", summary.partially_matched)
    cols[4].metric("Only in Books", summary.only_in_books)
    cols[5].metric("Only in GSTR-2B", summary.only_in_gstr2b)

    status_df = summary.to_frame().iloc[2:]
    if status_df['Count'].sum() > 0:
        fig = px.pie(status_df, names='Metric', values='Count', hole=0.45,
                     color='Metric',
                     color_discrete_map={
                         'Matched': '#43a047',
                         'Partially Matched': '#fbc02d',
                         'Only in Books': '#1976d2',
                         'Only in GSTR-2B': '#e53935',
                     })
        fig.update_layout(margin=dict(t=10, b=10, l=10, r=10), height=320)
        st.plotly_chart(fig, use_container_width=True)


def render_downloads(result):
    st.markdown("#### Download Reports")
    cols = st.columns(3)
    for i, (label, attribute, file_name) in enumerate(EXPORT_CATEGORIES):
        records = result.category(attribute)
        with cols[i % 3]:
            data = export_records(records)
            if data is None:
                st.warning(f"{label}: no data available to download for this category.")
                continue
            st.download_button(
                label=f"⬇️ {label} ({len(records)})",
                data=data,
                file_name=f"{file_name}.xlsx",
                mime=XLSX_MIME,
                key=f"download_{attribute}"
            )


def render_previews(result):
    tabs = st.tabs([label for label, _, _ in EXPORT_CATEGORIES])
    for tab, (label, attribute, _) in zip(tabs, EXPORT_CATEGORIES):
        with tab:
            records = result.category(attribute)
            if not records:
                st.info(f"No records in '{label}'.")
                continue
            st.dataframe(result.to_frame(attribute), use_container_width=True)


initialize_session_state()

st.title("GST Reconciliation Tool")
st.caption("Books vs GSTR-2B")

st.markdown("---")
st.header("Upload Your Files")

col1, col2 = st.columns(2)
with col1:
    books_file = st.file_uploader("Purchase Report (Books)", type=['xlsx'])
with col2:
    gstr2b_file = st.file_uploader("GSTR-2B Report", type=['xlsx'])
    report_type = st.selectbox(
        "Report Type",
        options=list(ReportType),
        format_func=lambda rt: rt.label,
    )

if st.button("Reconcile Now", type="primary", disabled=not (books_file and gstr2b_file)):
    with st.spinner("Processing..."):
        run_reconciliation(books_file, gstr2b_file, report_type)

if st.session_state.reconciliation_error is not None:
    render_error(st.session_state.reconciliation_error)

result = st.session_state.reconciliation_result
if result is not None:
    st.markdown("---")
    st.header("Reconciliation Summary")
    render_summary(result)
    render_downloads(result)
    st.markdown("---")
    render_previews(result)
