from __future__ import annotations

"""Column layouts of the shared spreadsheet tabs.

Fields are named here once and addressed by sheet letter everywhere else;
write indexes are derived with ``columns.column_index`` so that "column 59"
never appears as a literal.
"""

__all__ = [
    "ACTUAL_PRODUCTION",
    "ACTUAL_PRODUCTION_SHEET",
    "COSTING_RESPONSE",
    "COSTING_RESPONSE_SHEET",
    "JOBCARDS",
    "JOBCARDS_SHEET",
    "KYC",
    "KYC_SHEET",
    "LOGIN",
    "LOGIN_SHEET",
    "MASTER",
    "MASTER_SHEET",
    "ORDERS",
    "ORDERS_SHEET",
    "PRODUCTION",
    "PRODUCTION_SHEET",
]

ORDERS_SHEET = "Orders"
PRODUCTION_SHEET = "Production"
JOBCARDS_SHEET = "JobCards"
ACTUAL_PRODUCTION_SHEET = "Actual Production"
MASTER_SHEET = "Master"
KYC_SHEET = "KYC"
COSTING_RESPONSE_SHEET = "Costing Response"
LOGIN_SHEET = "Login_v2"

ORDERS = {
    "firm": "A",
    "party": "B",
    "order_no": "C",
    "product": "D",
}

PRODUCTION = {
    "timestamp": "A",
    "delivery_order_no": "B",
    "firm": "C",
    "party": "D",
    "product": "E",
    "quantity": "F",
    "expected_date": "G",
    "priority": "H",
    "note": "I",
    # full kitting
    "kitting_start": "U",
    "kitting_done": "V",
    # job card issue
    "job_card_start": "X",
    "job_card_done": "Y",
}

JOBCARDS = {
    "timestamp": "A",
    "job_card_no": "B",
    "firm": "C",
    "supervisor": "D",
    "delivery_order_no": "E",
    "party": "F",
    "product": "G",
    "quantity": "H",
    "production_date": "I",
    "shift": "J",
    "notes": "K",
    # production
    "production_start": "P",
    "production_done": "Q",
    # lab test 1
    "lab1_start": "S",
    "lab1_done": "T",
    "lab1_status": "V",
    "lab1_date": "W",
    "wc_percentage": "X",
    "lab1_tested_by": "Y",
    "initial_setting_time": "Z",
    "flow_of_material": "AA",
    "final_setting_time": "AB",
    "what_to_be_mixed": "AC",
    "sieve_analysis": "AD",
    # lab test 2
    "lab2_start": "AE",
    "lab2_done": "AF",
    "lab2_status": "AH",
    "lab2_tested_by": "AI",
    "lab2_date": "AJ",
    "bd_at_110": "AK",
    "ccs_at_110": "AL",
    "bd_at_1100": "AM",
    "ccs_at_1100": "AN",
    "plc_at_1100": "AO",
    # chemical test
    "chemical_start": "AP",
    "chemical_done": "AQ",
    "chemical_status": "AS",
    "alumina": "AT",
    "iron": "AU",
    "silica": "AV",
    "calcium": "AW",
}

ACTUAL_PRODUCTION = {
    "timestamp": "A",
    "job_card_no": "B",
    "firm": "C",
    "production_date": "D",
    "supervisor": "E",
    "product": "F",
    "quantity_fg": "G",
    "serial_no": "H",
    "first_material": "I",  # 20 (name, quantity) pairs: I..AV
    "machine_hours": "AW",
    # check
    "check_start": "BF",
    "check_done": "BG",
    "check_status": "BI",
    "check_actual_qty": "BJ",
    # tally
    "tally_start": "BK",
    "tally_done": "BL",
    "tally_remarks": "BN",
}

MASTER = {
    "priority": "A",
    "supervisor": "B",
    "shift": "C",
    "status": "D",
    "tested_by": "E",
    "material": "J",
    "flow_of_material": "K",
}

KYC = {
    "product": "A",
    "alumina": "B",
    "iron": "C",
    "price": "D",
    "bd": "E",
    "ap": "F",
}

COSTING_RESPONSE = {
    "timestamp": "A",
    "composition_no": "B",
}

LOGIN = {
    "username": "A",
    "id": "B",
    "password": "C",
    "role": "D",
    "permissions": "E",
}
