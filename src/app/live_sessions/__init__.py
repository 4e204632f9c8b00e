"""Live session domain: video conferencing adapter, calendar export and session store."""
