"""Static NYC gazetteer used before any remote geocoding."""

BOROUGH_CENTERS = {
    'Manhattan': (40.7831, -73.9712),
    'Brooklyn': (40.6782, -73.9442),
    'Queens': (40.7282, -73.7949),
    'The Bronx': (40.8448, -73.8648),
    'Staten Island': (40.5795, -74.1502),
}

# Lowercase match key -> (borough, neighborhood, lat, lng)
NEIGHBORHOODS = {
    # Manhattan
    'harlem': ('Manhattan', 'Harlem', 40.8116, -73.9465),
    'east harlem': ('Manhattan', 'East Harlem', 40.7957, -73.9389),
    'central park': ('Manhattan', 'Central Park', 40.7829, -73.9654),
    'times square': ('Manhattan', 'Times Square', 40.7580, -73.9855),
    'soho': ('Manhattan', 'SoHo', 40.7233, -74.0030),
    'chelsea': ('Manhattan', 'Chelsea', 40.7465, -74.0014),
    'greenwich village': ('Manhattan', 'Greenwich Village', 40.7336, -74.0027),
    'west village': ('Manhattan', 'West Village', 40.7358, -74.0036),
    'east village': ('Manhattan', 'East Village', 40.7264, -73.9815),
    'upper west side': ('Manhattan', 'Upper West Side', 40.7870, -73.9754),
    'upper east side': ('Manhattan', 'Upper East Side', 40.7736, -73.9566),
    'financial district': ('Manhattan', 'Financial District', 40.7074, -74.0113),
    'tribeca': ('Manhattan', 'Tribeca', 40.7163, -74.0086),
    'lower east side': ('Manhattan', 'Lower East Side', 40.7154, -73.9874),
    'chinatown': ('Manhattan', 'Chinatown', 40.7158, -73.9970),
    'little italy': ('Manhattan', 'Little Italy', 40.7193, -73.9973),
    'nolita': ('Manhattan', 'Nolita', 40.7233, -73.9950),
    'union square': ('Manhattan', 'Union Square', 40.7359, -73.9911),
    'gramercy': ('Manhattan', 'Gramercy', 40.7373, -73.9858),
    'murray hill': ('Manhattan', 'Murray Hill', 40.7478, -73.9754),
    'kips bay': ('Manhattan', 'Kips Bay', 40.7427, -73.9760),
    'flatiron': ('Manhattan', 'Flatiron', 40.7411, -73.9897),
    'nomad': ('Manhattan', 'NoMad', 40.7448, -73.9876),
    'hells kitchen': ('Manhattan', "Hell's Kitchen", 40.7637, -73.9918),
    "hell's kitchen": ('Manhattan', "Hell's Kitchen", 40.7637, -73.9918),
    'midtown': ('Manhattan', 'Midtown', 40.7549, -73.9840),
    'washington heights': ('Manhattan', 'Washington Heights', 40.8505, -73.9363),
    'inwood': ('Manhattan', 'Inwood', 40.8677, -73.9212),
    'morningside heights': ('Manhattan', 'Morningside Heights', 40.8108, -73.9606),
    'battery park': ('Manhattan', 'Battery Park', 40.7033, -74.0170),

    # Brooklyn
    'williamsburg': ('Brooklyn', 'Williamsburg', 40.7081, -73.9571),
    'greenpoint': ('Brooklyn', 'Greenpoint', 40.7304, -73.9519),
    'bushwick': ('Brooklyn', 'Bushwick', 40.6942, -73.9222),
    'dumbo': ('Brooklyn', 'DUMBO', 40.7033, -73.9888),
    'brooklyn heights': ('Brooklyn', 'Brooklyn Heights', 40.6955, -73.9940),
    'park slope': ('Brooklyn', 'Park Slope', 40.6710, -73.9778),
    'prospect heights': ('Brooklyn', 'Prospect Heights', 40.6779, -73.9690),
    'crown heights': ('Brooklyn', 'Crown Heights', 40.6689, -73.9420),
    'bedford stuyvesant': ('Brooklyn', 'Bedford-Stuyvesant', 40.6867, -73.9532),
    'bed stuy': ('Brooklyn', 'Bedford-Stuyvesant', 40.6867, -73.9532),
    'fort greene': ('Brooklyn', 'Fort Greene', 40.6915, -73.9739),
    'clinton hill': ('Brooklyn', 'Clinton Hill', 40.6883, -73.9662),
    'boerum hill': ('Brooklyn', 'Boerum Hill', 40.6863, -73.9851),
    'cobble hill': ('Brooklyn', 'Cobble Hill', 40.6862, -73.9961),
    'carroll gardens': ('Brooklyn', 'Carroll Gardens', 40.6787, -73.9991),
    'gowanus': ('Brooklyn', 'Gowanus', 40.6732, -73.9965),
    'red hook': ('Brooklyn', 'Red Hook', 40.6747, -74.0112),
    'sunset park': ('Brooklyn', 'Sunset Park', 40.6462, -74.0151),
    'bay ridge': ('Brooklyn', 'Bay Ridge', 40.6260, -74.0301),
    'bensonhurst': ('Brooklyn', 'Bensonhurst', 40.6017, -73.9942),
    'coney island': ('Brooklyn', 'Coney Island', 40.5755, -73.9707),
    'brighton beach': ('Brooklyn', 'Brighton Beach', 40.5776, -73.9596),
    'sheepshead bay': ('Brooklyn', 'Sheepshead Bay', 40.5872, -73.9393),
    'flatbush': ('Brooklyn', 'Flatbush', 40.6527, -73.9595),
    'east flatbush': ('Brooklyn', 'East Flatbush', 40.6522, -73.9333),
    'canarsie': ('Brooklyn', 'Canarsie', 40.6404, -73.9002),
    'brownsville': ('Brooklyn', 'Brownsville', 40.6628, -73.9104),
    'east new york': ('Brooklyn', 'East New York', 40.6665, -73.8827),
    'brooklyn bridge park': ('Brooklyn', 'Brooklyn Bridge Park', 40.7018, -73.9967),

    # Queens
    'astoria': ('Queens', 'Astoria', 40.7644, -73.9235),
    'long island city': ('Queens', 'Long Island City', 40.7447, -73.9485),
    'lic': ('Queens', 'Long Island City', 40.7447, -73.9485),
    'flushing': ('Queens', 'Flushing', 40.7676, -73.8333),
    'jackson heights': ('Queens', 'Jackson Heights', 40.7557, -73.8831),
    'corona': ('Queens', 'Corona', 40.7467, -73.8617),
    'elmhurst': ('Queens', 'Elmhurst', 40.7361, -73.8775),
    'forest hills': ('Queens', 'Forest Hills', 40.7189, -73.8448),
    'rego park': ('Queens', 'Rego Park', 40.7265, -73.8619),
    'kew gardens': ('Queens', 'Kew Gardens', 40.7146, -73.8308),
    'jamaica': ('Queens', 'Jamaica', 40.6942, -73.8064),
    'bayside': ('Queens', 'Bayside', 40.7685, -73.7693),
    'whitestone': ('Queens', 'Whitestone', 40.7943, -73.8170),
    'woodside': ('Queens', 'Woodside', 40.7456, -73.9052),
    'sunnyside': ('Queens', 'Sunnyside', 40.7433, -73.9196),
    'ridgewood': ('Queens', 'Ridgewood', 40.7006, -73.9052),
    'middle village': ('Queens', 'Middle Village', 40.7173, -73.8803),
    'maspeth': ('Queens', 'Maspeth', 40.7243, -73.9123),
    'glendale': ('Queens', 'Glendale', 40.7017, -73.8828),
    'rockaway': ('Queens', 'Rockaway', 40.5926, -73.8070),
    'far rockaway': ('Queens', 'Far Rockaway', 40.6052, -73.7553),

    # The Bronx
    'south bronx': ('The Bronx', 'South Bronx', 40.8242, -73.9126),
    'hunts point': ('The Bronx', 'Hunts Point', 40.8129, -73.8831),
    'mott haven': ('The Bronx', 'Mott Haven', 40.8125, -73.9195),
    'morrisania': ('The Bronx', 'Morrisania', 40.8315, -73.9054),
    'fordham': ('The Bronx', 'Fordham', 40.8619, -73.8977),
    'belmont': ('The Bronx', 'Belmont', 40.8549, -73.8896),
    'riverdale': ('The Bronx', 'Riverdale', 40.8958, -73.9126),
    'kingsbridge': ('The Bronx', 'Kingsbridge', 40.8812, -73.9051),
    'pelham bay': ('The Bronx', 'Pelham Bay', 40.8518, -73.8287),
    'city island': ('The Bronx', 'City Island', 40.8470, -73.7867),
    'throgs neck': ('The Bronx', 'Throgs Neck', 40.8185, -73.8234),
    'co-op city': ('The Bronx', 'Co-op City', 40.8741, -73.8290),
    'yankee stadium': ('The Bronx', 'Yankee Stadium', 40.8296, -73.9262),

    # Staten Island
    'st. george': ('Staten Island', 'St. George', 40.6437, -74.0737),
    'saint george': ('Staten Island', 'St. George', 40.6437, -74.0737),
    'stapleton': ('Staten Island', 'Stapleton', 40.6269, -74.0779),
    'tompkinsville': ('Staten Island', 'Tompkinsville', 40.6357, -74.0771),
    'new brighton': ('Staten Island', 'New Brighton', 40.6406, -74.0910),
    'port richmond': ('Staten Island', 'Port Richmond', 40.6340, -74.1352),
    'great kills': ('Staten Island', 'Great Kills', 40.5541, -74.1501),
    'tottenville': ('Staten Island', 'Tottenville', 40.5051, -74.2515),
}

BOROUGH_KEYWORDS = {
    'manhattan': 'Manhattan',
    'brooklyn': 'Brooklyn',
    'queens': 'Queens',
    'the bronx': 'The Bronx',
    'bronx': 'The Bronx',
    'staten island': 'Staten Island',
}
