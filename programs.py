SAMPLE_PROGRAMS = {
    'Data Hazard Example': """// Data Hazard Example
ADD R1, R2, R3    // R1 = R2 + R3
SUB R4, R1, R5    // Uses R1 (RAW hazard)
ADD R6, R4, R7    // Uses R4 (RAW hazard)""",

    'Control Hazard Example': """// Control Hazard Example
ADD R1, R2, R3    // R1 = R2 + R3
BEQ R1, R4, 8     // Branch instruction
ADD R5, R6, R7    // May not be executed
SUB R8, R9, R10   // May not be executed""",

    'Load-Use Hazard': """// Load-Use Hazard Example
LW R1, 0(R2)      // Load from memory
ADD R3, R1, R4    // Uses loaded value (stall required)
SUB R5, R3, R6    // Uses result""",

    'Mixed Hazards': """// Mixed Hazards Example
LW R1, 0(R2)      // Load instruction
ADD R3, R1, R4    // Load-use hazard
BEQ R3, R5, 8     // Control hazard
SW R3, 4(R2)      // Store instruction
ADD R6, R3, R7    // Data hazard""",

    'Complex Pipeline': """// Complex Pipeline Test
ADD R1, R2, R3    // R1 = R2 + R3
LW R4, 0(R1)      // Load using R1
SUB R5, R4, R2    // Use loaded R4
SW R5, 4(R1)      // Store result
BEQ R5, R6, 8     // Branch on result
ADD R7, R8, R9    // After branch
OR R10, R7, R4    // Multiple dependencies
AND R11, R10, R1  // Chain of dependencies""",
}

DEFAULT_PROGRAM = 'Data Hazard Example'
