"""
Converge the device service clustering (DSC) configuration of an appliance
to match a declaration.
"""
