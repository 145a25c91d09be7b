# Medicare national average payment rates (2024), per service
PAYMENT_RATES = {
    "99213": 92.03,
    "99214": 130.04,
    "99215": 176.15,
    # CCM
    "99490": 66.00,  # first 20 min
    "99439": 47.00,  # each additional 20 min
    # RPM
    "99453": 19.46,  # setup
    "99454": 55.72,  # device supply / month
    "99457": 48.80,  # first 20 min interactive
    "99458": 38.64,  # additional 20 min
    # BHI
    "99484": 48.56,
    # AWV
    "G0438": 174.79,  # initial
    "G0439": 118.88,  # subsequent
}
