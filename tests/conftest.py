"""Shared BAI2 fixtures."""

import pytest

ACCOUNT_LINES = [
    "03,1234567,USD,040,100,0,0/",
    "16,191,500,0,REF1,,Deposit, with comma/",
    "49,100,1/",
]

SAMPLE_FILE = """\
01,SENDER1,RECEIVER1,240115,0800,1,80,10,2/
02,RECEIVER1,BANK01,1,240114,2359,USD,2/
03,1234567,USD,040,100,0,0/
16,191,500,0,REF1,,Deposit, with comma/
16,495,250,0,REF2,CUST2,Wire out/
49,750,4/
03,7654321,USD,040,900,1,0/
16,169,900,0,REF3,,ACH credit/
49,1800,3/
98,2550,2,9/
02,RECEIVER1,BANK02,1,240114,2359,CAD,2/
03,5550001,CAD,040,10,0,0/
49,10,2/
98,10,1,4/
99,2560,2,15/
"""


@pytest.fixture
def account_lines():
    return list(ACCOUNT_LINES)


@pytest.fixture
def sample_content():
    return SAMPLE_FILE
