# main.py

import streamlit as st

st.set_page_config(
    page_title="Map Bookmarks",
    layout="centered",
    initial_sidebar_state="collapsed",
)

import logging
from bookmarks_page import bookmarks_page


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )
    bookmarks_page()


if __name__ == "__main__":
    main()
