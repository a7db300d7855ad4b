"""MediSync: medication tracking, doctor chat and AI health tools for Streamlit."""
