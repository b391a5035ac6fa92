"""Where a change entered the system.

Outbound handlers skip the partner push for partner-originated changes so a
sync never echoes back to its sender.
"""


class Origin:
    WAREHOUSE = "warehouse"
    PARTNER = "partner"
