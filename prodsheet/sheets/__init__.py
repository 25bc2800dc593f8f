"""Read / write access to the shared spreadsheet (gviz reads, script endpoint writes)."""
